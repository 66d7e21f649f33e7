"""Services package."""
from taxportal.services.checklist_store import ChecklistStore, get_checklist_store
from taxportal.services.file_handler import FileHandler
from taxportal.services.message_service import MessageService, get_message_service
from taxportal.services.questionnaire_service import (
    QuestionnaireService,
    get_questionnaire_service,
)
from taxportal.services.return_pipeline import (
    ReturnPipelineService,
    get_return_pipeline_service,
)
from taxportal.services.signature_service import SignatureService, get_signature_service
from taxportal.services.upload_reconciler import UploadReconciler, get_upload_reconciler

__all__ = [
    "ChecklistStore",
    "get_checklist_store",
    "FileHandler",
    "MessageService",
    "get_message_service",
    "QuestionnaireService",
    "get_questionnaire_service",
    "ReturnPipelineService",
    "get_return_pipeline_service",
    "SignatureService",
    "get_signature_service",
    "UploadReconciler",
    "get_upload_reconciler",
]

"""Tax client portal: document checklist and return preparation pipeline."""

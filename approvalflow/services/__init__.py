"""Services around the approval engine: directory, settings, notifications and reminders."""

"""
Stories app - children, story generation jobs and narration.

Stories are paid for from the credit ledger when they are requested; the
generation itself runs on Celery (see stories.worker).
"""

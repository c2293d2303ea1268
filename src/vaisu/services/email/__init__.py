from vaisu.services.email.resend_client import ResendClient, get_resend_client

__all__ = ["ResendClient", "get_resend_client"]

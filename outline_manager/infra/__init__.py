from outline_manager.infra.http import Auth, BearerAuth, HttpClient, HttpError, RefreshTokenAuth

__all__ = ["Auth", "BearerAuth", "HttpClient", "HttpError", "RefreshTokenAuth"]

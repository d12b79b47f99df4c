from .credentials import TOKEN_HEADER, URL_HEADER, credentials_from_headers

__all__ = ["credentials_from_headers", "TOKEN_HEADER", "URL_HEADER"]

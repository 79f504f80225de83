from cozeapi.http.client import APIClient, MultipartForm, RequestOptions
from cozeapi.http.base import APIBase

__all__ = ["APIBase", "APIClient", "MultipartForm", "RequestOptions"]

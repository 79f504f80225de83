from cozeapi.auth.token_manager import StaticTokenService, TokenManager, TokenService
from cozeapi.auth.jwt import JoseSigner, JWTTokenService, Signer

__all__ = [
    "JWTTokenService",
    "JoseSigner",
    "Signer",
    "StaticTokenService",
    "TokenManager",
    "TokenService",
]

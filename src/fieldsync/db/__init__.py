"""Remote table gateways."""

from .gateway import TableGateway, remote_id
from .nocodb import NocoDBGateway
from .supabase import SupabaseTableGateway, get_supabase_client
from ..config import settings


def build_gateway(backend: str | None = None) -> TableGateway:
    match backend or settings.remote_backend:
        case "nocodb":
            return NocoDBGateway()
        case "supabase":
            return SupabaseTableGateway()
        case other:
            raise ValueError(f"Unknown remote backend '{other}'.")


__all__ = [
    "TableGateway",
    "NocoDBGateway",
    "SupabaseTableGateway",
    "build_gateway",
    "get_supabase_client",
    "remote_id",
]

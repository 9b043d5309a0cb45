__all__ = [
    "create_access_token",
    "decode_user_id",
    "get_current_user",
    "oauth2_scheme",
]


def __getattr__(name):
    if name in set(__all__):
        from . import security as _security
        return getattr(_security, name)
    raise AttributeError(f"module 'skillswap_core.utils' has no attribute '{name}'")

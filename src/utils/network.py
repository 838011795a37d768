def resolve_http_host(
    arg_host: str | None,
    env_host: str | None,
    default_host: str | None = None,
) -> str:
    """Resolve the bind host: CLI argument, then environment, then default."""

    if arg_host:
        return arg_host
    if env_host:
        return env_host

    return default_host or "127.0.0.1"

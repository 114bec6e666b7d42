import os, typing as t

def _load_p8_as_der_bytes(path: str) -> bytes:
    from cryptography.hazmat.primitives import serialization

    with open(path, "rb") as f:
        raw = f.read()
    is_pem = raw.lstrip().startswith(b"-----BEGIN")
    if is_pem:
        key = serialization.load_pem_private_key(raw, password=None)
    else:
        key = serialization.load_der_private_key(raw, password=None)

    # Snowflake needs unencrypted PKCS#8 DER bytes
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

def _sf_connect_for(db: str, schema: str, *, role: t.Optional[str] = None):
    import snowflake.connector

    common = dict(
        account=os.environ["SNOWFLAKE_ACCOUNT"],
        warehouse=os.environ["SNOWFLAKE_WAREHOUSE"],
        database=db,
        schema=schema,
        client_session_keep_alive=True,
        session_parameters={
            "QUERY_TAG": "api:movie-catalog",
        },
    )
    if role:
        common["role"] = role

    pk_path = os.environ["SNOWFLAKE_PRIVATE_KEY_PATH"]
    pkb = _load_p8_as_der_bytes(pk_path)
    return snowflake.connector.connect(
        user=os.environ["SNOWFLAKE_USER"],
        private_key=pkb,
        **common
    )

def _split_db_path(path: str) -> tuple[str, str]:
    """Accept DB.SCHEMA or SCHEMA; fill the database from env."""
    parts = [p.strip().strip('"') for p in path.split(".") if p.strip() != ""]
    if len(parts) == 2:
        return parts[0], parts[1]
    if len(parts) == 1:
        db = os.environ.get("SNOWFLAKE_DATABASE")
        if not db:
            raise RuntimeError("SCHEMA given but SNOWFLAKE_DATABASE not set.")
        return db, parts[0]
    raise RuntimeError(f"Invalid schema name: {path!r}")

def snowflake_connect_for(schema_path: t.Optional[str] = None) -> t.Callable[[], t.Any]:
    """
    Connection factory bound to one database/schema, defaulting to
    SNOWFLAKE_DATABASE.SNOWFLAKE_SCHEMA and SNOWFLAKE_DEFAULT_ROLE.
    """
    path = schema_path or os.environ.get("SNOWFLAKE_SCHEMA", "")
    db, schema = _split_db_path(path)
    role = os.getenv("SNOWFLAKE_DEFAULT_ROLE")

    def _connect():
        return _sf_connect_for(db, schema, role=role)

    return _connect

def snowflake_integrity_errors() -> tuple[type, ...]:
    from snowflake.connector.errors import IntegrityError

    return (IntegrityError,)

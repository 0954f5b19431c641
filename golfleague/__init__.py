import os
from flask import Flask


def _env_int(name, default):
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def create_app():
    app = Flask(__name__)

    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError(
            "DATABASE_URL is required. League rosters, rounds and rules live in PostgreSQL."
        )

    minconn = _env_int("DB_POOL_MIN", 1)
    maxconn = _env_int("DB_POOL_MAX", 10)
    # Direct connections still work if the pool cannot be created
    try:
        from . import datastore_pg as _pg
        _pg.init_pool(minconn=minconn, maxconn=maxconn)
    except Exception:  # pragma: no cover
        app.logger.exception("PostgreSQL pool initialization failed; continuing without pool")

    from . import routes  # type: ignore
    app.register_blueprint(routes.bp)

    app.logger.info("Registered league routes (pool min=%s max=%s)", minconn, maxconn)
    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port)

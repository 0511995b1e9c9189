from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from compliance.api import create_app
from compliance.config import Settings, load_dotenv
from compliance.logger import configure_logging
from compliance.rules import build_default_catalog
from compliance.validation import ComplianceEngine


def build_app() -> FastAPI:
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    engine = ComplianceEngine(
        build_default_catalog(settings.rule_policy()),
        scoring=settings.scoring_policy(),
    )
    return create_app(engine=engine)


def main() -> None:
    uvicorn.run("compliance.api_main:build_app", factory=True, host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()

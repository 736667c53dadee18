import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request

from clearpath.api.v1.api import api_router
from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.core.config import build_data_paths, get_settings
from clearpath.core.logging import configure_logging, request_id_var
from clearpath.services.eligibility import EligibilityEngine
from clearpath.services.packages import DocumentPackageAssembler
from clearpath.services.validation import LegalDataValidator
from clearpath.templating.processor import SecureTemplateProcessor
from clearpath.templating.registry import TemplateRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)

    data_paths = build_data_paths(settings.data_base_path)
    for name, path in data_paths.model_dump().items():
        if not path.exists():
            logger.warning("Data path missing", extra={"dataset": name, "path": str(path)})

    jurisdictions = JurisdictionRegistry.load(data_paths.jurisdictions)
    template_registry = TemplateRegistry.load(data_paths.templates)
    validator = LegalDataValidator(jurisdictions)
    processor = SecureTemplateProcessor(template_registry, settings)

    app.state.jurisdictions = jurisdictions
    app.state.template_registry = template_registry
    app.state.eligibility_engine = EligibilityEngine(jurisdictions)
    app.state.template_processor = processor
    app.state.package_assembler = DocumentPackageAssembler(processor, template_registry, jurisdictions, validator)
    logger.info(
        "Relief services initialized",
        extra={"jurisdictions": jurisdictions.ids(), "template_count": len(template_registry)},
    )
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "request_id": request_id,
            },
        )
        return response

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()

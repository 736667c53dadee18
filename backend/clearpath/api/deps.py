from fastapi import Request

from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.services.eligibility import EligibilityEngine
from clearpath.services.packages import DocumentPackageAssembler
from clearpath.templating.processor import SecureTemplateProcessor
from clearpath.templating.registry import TemplateRegistry


def get_jurisdictions(request: Request) -> JurisdictionRegistry:
    return request.app.state.jurisdictions


def get_template_registry(request: Request) -> TemplateRegistry:
    return request.app.state.template_registry


def get_eligibility_engine(request: Request) -> EligibilityEngine:
    return request.app.state.eligibility_engine


def get_template_processor(request: Request) -> SecureTemplateProcessor:
    return request.app.state.template_processor


def get_package_assembler(request: Request) -> DocumentPackageAssembler:
    return request.app.state.package_assembler

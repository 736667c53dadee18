import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import jsonschema
from pydantic import Field, ValidationError

from clearpath.schemas.base import FrozenCamelModel
from clearpath.schemas.documents import DocumentField, DocumentTemplate

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


class TemplateNotFoundError(KeyError):
    pass


class TemplateRegistryError(ValueError):
    pass


class TemplateManifestEntry(FrozenCamelModel):
    id: str
    name: str
    document_type: str
    jurisdiction: str
    body: str = Field(description="Template body file, relative to the manifest")
    required_fields: List[DocumentField] = Field(default_factory=list)
    version: str = "1.0.0"


class TemplateManifest(FrozenCamelModel):
    templates: List[TemplateManifestEntry]


class TemplateRegistry:
    """In-memory map of document templates, keyed by template id."""

    def __init__(self, templates: Iterable[DocumentTemplate] = ()) -> None:
        self._templates: Dict[str, DocumentTemplate] = {}
        for template in templates:
            self.register(template)

    @classmethod
    def load(cls, path: Path) -> "TemplateRegistry":
        manifest_path = path / MANIFEST_NAME
        if not manifest_path.exists():
            logger.warning("Template manifest not found", extra={"path": str(manifest_path)})
            return cls()

        try:
            raw = json.loads(manifest_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise TemplateRegistryError(f"Template manifest is not valid JSON: {manifest_path}") from exc

        try:
            jsonschema.validate(instance=raw, schema=TemplateManifest.model_json_schema())
        except jsonschema.ValidationError as exc:
            raise TemplateRegistryError(f"Template manifest failed schema validation: {exc.message}") from exc

        try:
            manifest = TemplateManifest.model_validate(raw)
        except ValidationError as exc:
            raise TemplateRegistryError("Template manifest failed model validation") from exc

        registry = cls()
        for entry in manifest.templates:
            body_path = path / entry.body
            if not body_path.is_file():
                raise TemplateRegistryError(f"Template body missing for {entry.id}: {body_path}")
            registry.register(
                DocumentTemplate(
                    id=entry.id,
                    name=entry.name,
                    document_type=entry.document_type,
                    jurisdiction=entry.jurisdiction,
                    required_fields=entry.required_fields,
                    template=body_path.read_text(encoding="utf-8").strip(),
                    version=entry.version,
                )
            )

        logger.info("Templates loaded", extra={"count": len(registry), "path": str(path)})
        return registry

    def register(self, template: DocumentTemplate) -> None:
        self._templates[template.id] = template

    def get(self, template_id: str) -> DocumentTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def find_by_document_type(self, jurisdiction: str, document_type: str) -> Optional[DocumentTemplate]:
        jurisdiction = jurisdiction.lower()
        for template in self._templates.values():
            if template.jurisdiction == jurisdiction and template.document_type == document_type:
                return template
        return None

    def list(self, jurisdiction: Optional[str] = None) -> List[DocumentTemplate]:
        templates = list(self._templates.values())
        if jurisdiction is not None:
            templates = [template for template in templates if template.jurisdiction == jurisdiction.lower()]
        return templates

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)

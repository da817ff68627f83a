"""Service wiring from configuration."""
from __future__ import annotations

from cryptography.fernet import Fernet

from core.config.config_service import ConfigService
from documents.bootstrap import build_services
from documents.enum.document_status import ContentKind, WorkflowStatus
from signature.models.geometry import PageSize, Point
from signature.models.signature_enums import PlacementKind
from signature.tests.sample_content import image_bytes


def test_services_built_from_configuration(tmp_path) -> None:
    missing = tmp_path / "missing.ini"
    key = Fernet.generate_key().decode()
    cfg = ConfigService(defaults_ini=missing, machine_ini=missing, user_ini=missing, environ={
        "LETTERFLOW_DATABASE__PATH": str(tmp_path / "db" / "letters.db"),
        "LETTERFLOW_STORAGE__ROOT": str(tmp_path / "blobs"),
        "LETTERFLOW_STORAGE__ENCRYPTION_KEYS": key,
        "LETTERFLOW_WORKFLOW__ID_PREFIX": "HR",
        "LETTERFLOW_WORKFLOW__MAX_REVIEWERS": "1",
    })
    services = build_services(cfg)
    try:
        sig = services.storage.store(image_bytes("PNG"), suffix=".png")
        doc = services.workflow.create_document("alice", "Welcome", content_kind=ContentKind.CONTINUOUS,
                                                body="<p>Hello #name#</p>", template_values={"name": "Bob"})
        assert doc.doc_id.startswith("HR-")
        assert doc.body == "<p>Hello Bob</p>"

        services.workflow.configure_chain(doc.doc_id, "alice", ["A"], "C")
        services.workflow.submit(doc.doc_id, "alice")
        services.workflow.approve_review(doc.doc_id, "A", "fine")
        placement = services.placement.place(PlacementKind.SIGNATURE, Point(300, 700), Point(0, 0), 1.0,
                                             PageSize(612, 792), image_ref=sig)
        result = services.workflow.final_approve(doc.doc_id, "C", "approved", [placement])
        assert [b.placement_id for b in result.burned] == [placement.placement_id]
        assert result.status == WorkflowStatus.APPROVED
        assert services.queries.public_record(doc.doc_id).artifact_ref == result.document.artifact_ref
        assert (tmp_path / "db" / "letters.db").is_file()
    finally:
        services.close()

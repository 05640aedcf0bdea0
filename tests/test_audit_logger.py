import json
import logging

from phone_verify.infrastructure.audit.std_logger import StdAuditLogger, hash_phone_number


def test_audit_entry_hashes_phone(caplog):
    audit = StdAuditLogger(logging.getLogger("test.audit"))
    with caplog.at_level(logging.INFO, logger="test.audit"):
        audit.log("verification.start", "+15551234567", verification_id="verif_abc", success=True)

    message = caplog.records[-1].getMessage()
    assert message.startswith("AUDIT: ")
    entry = json.loads(message[len("AUDIT: "):])
    assert entry["action"] == "verification.start"
    assert entry["phone_hash"] == hash_phone_number("+15551234567")
    assert "+15551234567" not in message
    assert entry["verification_id"] == "verif_abc"


def test_audit_entry_without_phone(caplog):
    audit = StdAuditLogger(logging.getLogger("test.audit"))
    with caplog.at_level(logging.INFO, logger="test.audit"):
        audit.log("verification.check", None, verification_id="verif_abc", success=False, details={"error_kind": "code_rejected"})
    entry = json.loads(caplog.records[-1].getMessage()[len("AUDIT: "):])
    assert entry["phone_hash"] is None
    assert entry["details"] == {"error_kind": "code_rejected"}

import unittest

from purchasing.contexts.procurement.domain import OPERATIONS, PurchaseRequestStatus, RfqItemStatus
from purchasing.errors import DOMAIN_ERROR_HTTP_STATUS
from purchasing.ui_strings import (
    ACTION_LABELS,
    MESSAGES,
    STATUS_GROUPS,
    error_message,
    status_keys_for_group,
    status_label,
)


class UiStringsStatusGroupsTest(unittest.TestCase):
    def test_status_groups_match_enums(self) -> None:
        self.assertEqual(
            status_keys_for_group("purchase_request"),
            [status.value for status in PurchaseRequestStatus],
        )
        self.assertEqual(status_keys_for_group("rfq_item"), [status.value for status in RfqItemStatus])

    def test_status_labels_and_descriptions_are_not_empty(self) -> None:
        for group_name, statuses in STATUS_GROUPS.items():
            for status in statuses:
                self.assertTrue((status.get("label") or "").strip(), f"empty label in {group_name}:{status['key']}")
                self.assertTrue(
                    (status.get("description") or "").strip(),
                    f"empty description in {group_name}:{status['key']}",
                )

    def test_every_operation_has_a_label(self) -> None:
        self.assertTrue(set(OPERATIONS).issubset(ACTION_LABELS))

    def test_every_domain_error_has_a_message(self) -> None:
        for kind in DOMAIN_ERROR_HTTP_STATUS:
            self.assertIn(kind, MESSAGES["error"])

    def test_fallbacks(self) -> None:
        self.assertEqual(status_label("purchase_request", "rfq_sent"), "RFQ sent")
        self.assertEqual(status_label("purchase_request", "mystery"), "mystery")
        self.assertEqual(error_message("missing_key", "fallback"), "fallback")


if __name__ == "__main__":
    unittest.main()

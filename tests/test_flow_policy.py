import unittest

from purchasing.contexts.procurement.domain import PurchaseRequestStatus
from purchasing.procurement.flow_policy import (
    PRIMARY_ACTIONS,
    PROCESS_STAGES,
    action_allowed,
    allowed_actions,
    build_process_steps,
    flow_meta,
    item_actions,
    stage_for_status,
)


class FlowPolicyTest(unittest.TestCase):
    def test_required_process_stages_exist(self) -> None:
        keys = [item["key"] for item in PROCESS_STAGES]
        self.assertEqual(keys, ["request", "quotation", "decision", "order", "done"])

    def test_primary_action_is_in_allowed_actions(self) -> None:
        for status in PurchaseRequestStatus:
            primary = PRIMARY_ACTIONS[status]
            if primary:
                self.assertIn(primary, allowed_actions(status.value), f"primary not allowed for {status.value}")

    def test_terminal_statuses_have_no_actions(self) -> None:
        for status in ("closed", "canceled"):
            meta = flow_meta(status)
            self.assertEqual(meta["allowed_actions"], [])
            self.assertIsNone(meta["primary_action"])

    def test_actions_follow_transition_table(self) -> None:
        self.assertTrue(action_allowed("draft", "update"))
        self.assertFalse(action_allowed("rfq_sent", "update"))
        self.assertTrue(action_allowed("ordered", "revert_vendor_selection"))
        self.assertFalse(action_allowed("unknown", "cancel"))
        self.assertFalse(action_allowed("draft", ""))

    def test_item_actions_combine_header_and_item_status(self) -> None:
        self.assertEqual(item_actions("draft", "sent"), [])
        self.assertEqual(item_actions("rfq_sent", "replied"), ["reject_rfq", "select_vendor"])
        self.assertEqual(item_actions("vendor_selected", "selected"), ["revert_vendor_selection"])
        self.assertEqual(item_actions("rfq_sent", "bogus"), [])

    def test_flow_meta_labels_every_action(self) -> None:
        meta = flow_meta("rfq_sent")
        self.assertEqual(meta["stage"], "quotation")
        self.assertEqual(set(meta["action_labels"]), set(meta["allowed_actions"]))
        self.assertEqual(meta["action_labels"]["send_rfq"], "Send RFQ")

    def test_process_steps_mark_current_stage(self) -> None:
        steps = build_process_steps(stage_for_status("vendor_selected"))
        states = [step["state"] for step in steps]
        self.assertEqual(states, ["completed", "completed", "current", "future", "future"])


if __name__ == "__main__":
    unittest.main()

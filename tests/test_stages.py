"""Tests for order_tickets.domain.stages."""

import pytest

from order_tickets.domain import stages
from order_tickets.domain.models import Action, Perspective, Stage

TERMINAL = [Stage.FINISHED, Stage.CANCELED_BY_CUSTOMER, Stage.CANCELED_BY_OWNER]
ACTIVE = [s for s in Stage if s not in TERMINAL]


class TestAdvance:
    @pytest.mark.parametrize("stage,expected", [
        (Stage.OWNERS_CONFIRMATION, Stage.COOKING),
        (Stage.COOKING, Stage.DELIVERY),
        (Stage.DELIVERY, Stage.CUSTOMER_CONFIRMATION),
        (Stage.CUSTOMER_CONFIRMATION, Stage.FINISHED),
    ])
    def test_moves_one_step(self, stage, expected):
        assert stages.advance(stage) == (expected, True)

    @pytest.mark.parametrize("stage", TERMINAL)
    def test_terminal_is_noop(self, stage):
        assert stages.advance(stage) == (stage, False)


class TestCancel:
    @pytest.mark.parametrize("stage", list(Stage))
    def test_customer_cancel(self, stage):
        assert stages.cancel(stage, actor_is_customer=True) is Stage.CANCELED_BY_CUSTOMER

    @pytest.mark.parametrize("stage", list(Stage))
    def test_owner_cancel(self, stage):
        assert stages.cancel(stage, actor_is_customer=False) is Stage.CANCELED_BY_OWNER


class TestMessages:
    def test_every_pair_has_a_rendered_template(self):
        for stage in Stage:
            for perspective in Perspective:
                template = stages.message_for(stage, perspective)
                assert "#5" in stages.render(template, 5)

    def test_finished_uses_completed_for_both(self):
        assert stages.message_for(Stage.FINISHED, Perspective.CUSTOMER) == "completed"
        assert stages.message_for(Stage.FINISHED, Perspective.OWNER) == "completed"

    def test_perspectives_differ_while_active(self):
        for stage in ACTIVE:
            assert (
                stages.message_for(stage, Perspective.CUSTOMER)
                != stages.message_for(stage, Perspective.OWNER)
            )


class TestMarkup:
    @pytest.mark.parametrize("stage", ACTIVE)
    def test_cancel_available_while_active(self, stage):
        for perspective in Perspective:
            assert Action.CANCEL in stages.markup_for(stage, perspective)

    @pytest.mark.parametrize("stage", TERMINAL)
    def test_no_actions_when_terminal(self, stage):
        for perspective in Perspective:
            assert stages.markup_for(stage, perspective) == ()

    def test_advance_only_for_owner(self):
        with_advance = {
            stage for stage in Stage
            if Action.ADVANCE in stages.markup_for(stage, Perspective.OWNER)
        }
        assert with_advance == {Stage.OWNERS_CONFIRMATION, Stage.COOKING, Stage.DELIVERY}
        for stage in Stage:
            assert Action.ADVANCE not in stages.markup_for(stage, Perspective.CUSTOMER)

    def test_confirm_only_for_customer_confirmation(self):
        for stage in Stage:
            for perspective in Perspective:
                expected = (
                    stage is Stage.CUSTOMER_CONFIRMATION
                    and perspective is Perspective.CUSTOMER
                )
                assert (Action.CONFIRM in stages.markup_for(stage, perspective)) is expected


class TestStageTable:
    def test_missing_pair_raises(self):
        entries = {
            (stage, perspective): "x"
            for stage in Stage
            for perspective in Perspective
        }
        del entries[(Stage.COOKING, Perspective.OWNER)]
        with pytest.raises(ValueError, match="cooking/owner"):
            stages.StageTable("test", entries)

    def test_complete_table_builds(self):
        entries = {(s, p): 1 for s in Stage for p in Perspective}
        table = stages.StageTable("test", entries)
        assert table[Stage.DELIVERY, Perspective.CUSTOMER] == 1

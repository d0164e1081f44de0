"""
Tests for core.primitives.actor - who performed an action.
"""

import pytest

from core.primitives.actor import Actor, ActorType, Role


class TestActor:
    def test_human_factory(self):
        actor = Actor.human("hany", "Hany Samir", roles=[Role.FINANCE])
        assert actor.is_human
        assert actor.actor_id == "hany"
        assert actor.roles == frozenset({Role.FINANCE})

    def test_system_factory_runs_as_admin(self):
        actor = Actor.system("threshold-audit")
        assert actor.is_system
        assert actor.actor_id == "system:threshold-audit"
        assert Role.ADMIN in actor.roles

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError, match="Unknown roles"):
            Actor.human("x", "X", roles=["janitor"])

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError, match="actor_id"):
            Actor(actor_type=ActorType.HUMAN, actor_id="", display_name="X")

    def test_actor_type_must_be_enum(self):
        with pytest.raises(ValueError, match="ActorType"):
            Actor(actor_type="HUMAN", actor_id="x", display_name="X")

    def test_roles_coerced_to_frozenset(self):
        actor = Actor(
            actor_type=ActorType.HUMAN, actor_id="x", display_name="X", roles=[Role.CRM],
        )
        assert isinstance(actor.roles, frozenset)


class TestRoleChecks:
    def test_matching_role(self):
        actor = Actor.human("hany", "Hany", roles=[Role.FINANCE])
        assert actor.has_any_role({Role.FINANCE, Role.MANAGEMENT})

    def test_missing_role(self):
        actor = Actor.human("omar", "Omar", roles=[Role.FACTORY])
        assert not actor.has_any_role({Role.FINANCE})

    def test_admin_allowed_everything(self):
        actor = Actor.human("root", "Root", roles=[Role.ADMIN])
        assert actor.has_any_role({Role.FINANCE})
        assert actor.has_any_role(set())

    def test_to_dict(self):
        actor = Actor.human("hany", "Hany", roles=[Role.MANAGEMENT, Role.FINANCE])
        data = actor.to_dict()
        assert data["actor_type"] == "Human"
        assert data["roles"] == ["finance", "management"]

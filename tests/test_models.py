"""Tests for registry data models and coded enumerations."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from bluecarbon.registry.models import (
    ActorRole,
    EcosystemType,
    MRVSubmission,
    Project,
    ProjectCreate,
    ProjectStatus,
    StakeholderCreate,
    StakeholderType,
)


class TestCodedEnums:
    """Bidirectional code tables."""

    def test_ecosystem_codes(self):
        assert EcosystemType.MANGROVE.to_code() == 0
        assert EcosystemType.COASTAL_WETLAND.to_code() == 4
        assert EcosystemType.from_code(2) is EcosystemType.SALTMARSH
        assert EcosystemType.SALTMARSH.display_name == "Salt Marsh"

    def test_stakeholder_codes(self):
        assert StakeholderType.PANCHAYAT.to_code() == 2
        assert StakeholderType.from_code(5) is StakeholderType.PRIVATE
        assert StakeholderType.NGO.display_name == "NGO"

    def test_project_status_codes(self):
        assert [s.to_code() for s in ProjectStatus] == [0, 1, 2, 3, 4]
        assert ProjectStatus.from_code(3) is ProjectStatus.SUSPENDED

    @pytest.mark.parametrize("enum_cls", [EcosystemType, StakeholderType, ProjectStatus])
    def test_every_member_has_a_unique_code(self, enum_cls):
        codes = [m.to_code() for m in enum_cls]
        assert len(set(codes)) == len(codes)
        assert all(enum_cls.from_code(m.to_code()) is m for m in enum_cls)

    def test_unknown_code_raises(self):
        with pytest.raises(ValueError):
            EcosystemType.from_code(9)

    @pytest.mark.parametrize("text", ["Salt Marsh", "SALTMARSH", "saltmarsh", "salt_marsh"])
    def test_parse_ignores_case_and_spacing(self, text):
        assert EcosystemType.parse(text) is EcosystemType.SALTMARSH

    def test_parse_accepts_member_name(self):
        assert EcosystemType.parse("COASTAL_WETLAND") is EcosystemType.COASTAL_WETLAND
        assert StakeholderType.parse("ngo") is StakeholderType.NGO

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError, match="Invalid EcosystemType"):
            EcosystemType.parse("kelp forest")


class TestActorRole:

    def test_admin_satisfies_verifier(self):
        assert ActorRole.ADMIN.satisfies(ActorRole.VERIFIER)
        assert ActorRole.ADMIN.satisfies(ActorRole.ADMIN)

    def test_verifier_does_not_satisfy_admin(self):
        assert not ActorRole.VERIFIER.satisfies(ActorRole.ADMIN)
        assert ActorRole.VERIFIER.satisfies(ActorRole.VERIFIER)

    def test_public_and_stakeholder_are_not_verifiers(self):
        assert not ActorRole.PUBLIC.satisfies(ActorRole.VERIFIER)
        assert not ActorRole.STAKEHOLDER.satisfies(ActorRole.VERIFIER)


class TestRequestModels:
    """Validation rules of API payloads."""

    def _project(self, **overrides):
        data = {
            "name": "Chilika Seagrass",
            "location": "Odisha, India",
            "area": 40,
            "ecosystemType": "seagrass",
        }
        data.update(overrides)
        return data

    def test_valid_project(self):
        payload = ProjectCreate.model_validate(self._project(ecosystemType="Tidal Marsh"))
        assert payload.ecosystem_type is EcosystemType.TIDALMARSH
        assert payload.estimated_credits == 0

    @pytest.mark.parametrize("overrides", [
        {"area": 0},
        {"area": -5},
        {"area": 100001},
        {"name": ""},
        {"name": "   "},
        {"location": ""},
        {"ecosystemType": "kelp"},
        {"coordinates": "somewhere"},
    ])
    def test_invalid_project(self, overrides):
        with pytest.raises(PydanticValidationError):
            ProjectCreate.model_validate(self._project(**overrides))

    def test_stakeholder_name_letters_only(self):
        with pytest.raises(PydanticValidationError):
            StakeholderCreate.model_validate({
                "name": "R2D2",
                "organization": "Droids",
                "stakeholderType": "Private",
                "location": "Tatooine",
            })

    def test_stakeholder_address_pattern(self):
        with pytest.raises(PydanticValidationError):
            StakeholderCreate.model_validate({
                "name": "Asha Devi",
                "organization": "Village Panchayat",
                "stakeholderType": "Panchayat",
                "location": "Sagar Island",
                "address": "0x123",
            })

    def test_mrv_measurement_ranges(self):
        data = {
            "projectId": "p-1",
            "collectorAddress": "collector-1",
            "dataHash": "QmHash1234567890",
            "coordinates": "21.9,88.8",
            "carbonSequestration": 3.2,
            "measurements": {"phLevel": 15},
        }
        with pytest.raises(PydanticValidationError):
            MRVSubmission.model_validate(data)

        data["measurements"] = {"phLevel": 7.8, "customProbe": "ok"}
        payload = MRVSubmission.model_validate(data)
        dumped = payload.measurements.model_dump(by_alias=True, exclude_none=True)
        assert dumped == {"phLevel": 7.8, "customProbe": "ok"}

    def test_negative_sequestration_rejected(self):
        with pytest.raises(PydanticValidationError):
            MRVSubmission.model_validate({
                "projectId": "p-1",
                "collectorAddress": "collector-1",
                "dataHash": "QmHash1234567890",
                "coordinates": "21.9,88.8",
                "carbonSequestration": -1,
            })

    @pytest.mark.parametrize("overrides", [
        {"carbonSequestration": float("inf")},
        {"carbonSequestration": float("nan")},
        {"measurements": {"salinity": float("inf")}},
        {"measurements": {"avgHeight": float("nan")}},
    ])
    def test_non_finite_values_rejected(self, overrides):
        data = {
            "projectId": "p-1",
            "collectorAddress": "collector-1",
            "dataHash": "QmHash1234567890",
            "coordinates": "21.9,88.8",
            "carbonSequestration": 3.2,
        }
        data.update(overrides)
        with pytest.raises(PydanticValidationError):
            MRVSubmission.model_validate(data)

    def test_project_area_must_be_finite(self):
        with pytest.raises(PydanticValidationError):
            ProjectCreate.model_validate(self._project(area=float("nan")))


class TestRecords:

    def test_project_record_is_camel_case(self):
        record = Project(
            name="Pichavaram",
            location="Tamil Nadu",
            area=12,
            ecosystem_type=EcosystemType.MANGROVE,
        ).to_record()

        assert record["ecosystemType"] == "mangrove"
        assert record["status"] == "pending"
        assert record["actualCredits"] == 0.0
        assert record["statusHistory"] == []
        assert "createdAt" in record and "id" in record

    def test_record_keeps_unknown_fields(self):
        record = Project.model_validate({
            "id": "p-1",
            "name": "Pichavaram",
            "location": "Tamil Nadu",
            "area": 12,
            "ecosystemType": "mangrove",
            "legacyField": "kept",
        }).to_record()
        assert record["legacyField"] == "kept"

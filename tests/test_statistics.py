"""Tests for registry statistics recomputation."""

from bluecarbon.registry.statistics import compute_overview, compute_statistics


def _projects():
    return [
        {"id": "p1", "status": "pending", "area": 10, "ecosystemType": "mangrove"},
        {"id": "p2", "status": "active", "area": 20.5, "ecosystemType": "mangrove"},
        {"id": "p3", "status": "verified", "area": 30, "ecosystemType": "seagrass"},
        {"id": "p4", "status": "suspended", "area": 40, "ecosystemType": "saltmarsh"},
        {"id": "p5", "status": "rejected", "area": 50, "ecosystemType": "seagrass"},
    ]


def _stakeholders():
    return [
        {"id": "s1", "approved": True, "stakeholderType": "NGO"},
        {"id": "s2", "approved": False, "stakeholderType": "NGO"},
        {"id": "s3", "approved": False, "stakeholderType": "Researcher"},
    ]


def _mrv():
    return [
        {"id": "m1", "status": "verified", "carbonSequestration": 5},
        {"id": "m2", "status": "rejected", "carbonSequestration": 7},
        {"id": "m3", "status": "submitted", "carbonSequestration": 11},
        {"id": "m4", "status": "verified", "carbonSequestration": 2.25},
    ]


class TestComputeStatistics:

    def test_empty_registry(self):
        stats = compute_statistics([], [], [])
        assert stats.total_projects == 0
        assert stats.total_verified_projects == 0
        assert stats.total_stakeholders == 0
        assert stats.total_carbon_sequestered == 0
        assert stats.total_area_under_restoration == 0

    def test_counts_and_sums(self):
        stats = compute_statistics(_projects(), _stakeholders(), _mrv())

        assert stats.total_projects == 5
        assert stats.total_verified_projects == 1
        assert stats.total_stakeholders == 3
        # only verified MRV records count
        assert stats.total_carbon_sequestered == 7.25
        # only active + verified projects count
        assert stats.total_area_under_restoration == 50.5

    def test_record_uses_camel_case(self):
        record = compute_statistics(_projects(), [], []).to_record()
        assert record["totalVerifiedProjects"] == 1
        assert "totalAreaUnderRestoration" in record

    def test_accepts_generators(self):
        stats = compute_statistics(iter(_projects()), iter(_stakeholders()), iter(_mrv()))
        assert stats.total_projects == 5
        assert stats.total_stakeholders == 3


class TestComputeOverview:

    def test_overview(self):
        credits = [
            {"amount": 3, "retired": False},
            {"amount": 2, "retired": True},
        ]
        overview = compute_overview(_projects(), _stakeholders(), _mrv(), credits)

        assert overview["statistics"]["totalProjects"] == 5
        assert overview["pendingProjects"] == 1
        assert overview["activeProjects"] == 1
        assert overview["verifiedProjects"] == 1
        assert overview["suspendedProjects"] == 1
        assert overview["rejectedProjects"] == 1
        assert overview["approvedStakeholders"] == 1
        assert overview["pendingStakeholders"] == 2
        assert overview["totalMRVSubmissions"] == 4
        assert overview["mrvByStatus"]["verified"] == 2
        assert overview["mrvByStatus"]["requiresUpdate"] == 0
        assert overview["totalCreditsIssued"] == 5
        assert overview["retiredCredits"] == 2
        assert overview["activeCredits"] == 3
        assert overview["ecosystemDistribution"] == {"mangrove": 2, "seagrass": 2, "saltmarsh": 1}
        assert overview["stakeholderDistribution"] == {"NGO": 2, "Researcher": 1}

    def test_credits_optional(self):
        overview = compute_overview([], [], [])
        assert overview["totalCreditsIssued"] == 0

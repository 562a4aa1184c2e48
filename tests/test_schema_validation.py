"""Tests for request schema validation and error formatting."""

import pytest

from folioguard.app.services.validation import (
    REQUIRED_MESSAGE,
    PortfolioInput,
    format_path,
    validate,
)


class TestFormatPath:
    """Tests for format_path."""

    def test_top_level_field(self):
        assert format_path(("email",)) == "email"

    def test_nested_list_item(self):
        assert format_path(("experiences", 0, "company")) == "experiences[0].company"

    def test_list_of_scalars(self):
        assert format_path(("technical_skills", 2)) == "technical_skills[2]"

    def test_empty_location_is_body(self):
        assert format_path(()) == "body"


class TestPortfolioInput:
    """Tests for validating portfolio payloads."""

    def test_valid_payload(self, portfolio_payload):
        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is True
        assert result.errors == {}
        assert isinstance(result.data, PortfolioInput)
        assert result.data.current_role.startswith("Leading")
        assert result.data.years_experience == "6-10"

    def test_accepts_snake_case_keys(self, portfolio_payload):
        portfolio_payload["current_role"] = portfolio_payload.pop("currentRole")

        assert validate(portfolio_payload, PortfolioInput).valid is True

    def test_ignores_unknown_fields(self, portfolio_payload):
        portfolio_payload["_csrf"] = "abc123"

        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is True
        assert "_csrf" not in result.data.model_dump(by_alias=True)

    def test_projects_may_be_null(self, portfolio_payload):
        portfolio_payload["projects"] = None

        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is True
        assert result.data.projects == []

    def test_missing_list_is_required(self, portfolio_payload):
        del portfolio_payload["experiences"]

        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is False
        assert result.errors["experiences"] == REQUIRED_MESSAGE

    def test_empty_list_is_required(self, portfolio_payload):
        portfolio_payload["experiences"] = []

        result = validate(portfolio_payload, PortfolioInput)

        assert result.errors == {"experiences": "This field is required"}

    def test_too_many_entries(self, portfolio_payload):
        portfolio_payload["experiences"] = portfolio_payload["experiences"] * 11

        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is False
        assert result.errors["experiences"] == "Too many entries (maximum 10)"

    def test_too_few_entries(self, portfolio_payload):
        portfolio_payload["technicalSkills"] = ["Python", "Go"]

        result = validate(portfolio_payload, PortfolioInput)

        assert result.errors["technical_skills"] == "At least 3 entries required"

    def test_nested_error_path(self, portfolio_payload):
        portfolio_payload["experiences"][0]["company"] = "A"

        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is False
        assert result.errors == {
            "experiences[0].company": "Must be at least 2 characters"
        }
        assert result.first_error == "Must be at least 2 characters"

    def test_field_specific_message(self, portfolio_payload):
        portfolio_payload["name"] = "J4ne"

        result = validate(portfolio_payload, PortfolioInput)

        assert result.errors["name"] == (
            "Name can only contain letters, spaces, hyphens, and apostrophes"
        )

    def test_invalid_email(self, portfolio_payload):
        portfolio_payload["email"] = "not-an-email"

        result = validate(portfolio_payload, PortfolioInput)

        assert result.errors["email"] == "Invalid email format"

    @pytest.mark.parametrize("field", ["currentRole", "keyAchievement"])
    def test_inappropriate_language_rejected(self, portfolio_payload, field):
        portfolio_payload[field] = "My role was mostly nsfw moderation work"

        result = validate(portfolio_payload, PortfolioInput)

        assert result.valid is False
        assert "Content contains inappropriate language" in result.errors.values()

    def test_years_experience_must_be_known_value(self, portfolio_payload):
        portfolio_payload["yearsExperience"] = "7"

        result = validate(portfolio_payload, PortfolioInput)

        assert result.errors["years_experience"].startswith("Must be one of")

    def test_invalid_project_link(self, portfolio_payload):
        portfolio_payload["projects"] = [{
            "name": "Ledger",
            "description": "Double-entry ledger service",
            "technologies": ["Go"],
            "impact": "Reconciled 2M transactions a day",
            "link": "not a url",
        }]

        result = validate(portfolio_payload, PortfolioInput)

        assert result.errors == {"projects[0].link": "Invalid URL"}

    def test_one_message_per_field(self, portfolio_payload):
        """Several failures on one field still produce a single message."""
        portfolio_payload["name"] = "1"

        result = validate(portfolio_payload, PortfolioInput)

        assert list(result.errors) == ["name"]

    def test_non_object_body(self):
        result = validate(["not", "an", "object"], PortfolioInput)

        assert result.valid is False
        assert result.errors == {"body": "Must be an object"}

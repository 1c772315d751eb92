"""Prompt templates for report summaries."""

import json
from enum import Enum
from typing import Any


class ReportType(str, Enum):
    """Reports that can be summarized."""

    SOIL = "soil"
    WATER = "water"


class ReportSummaryPromptTemplate:
    """Builds the system and user prompts for an executive report summary."""

    SOIL_SYSTEM_PROMPT = (
        "You are an agricultural AI assistant specializing in soil analysis. "
        "Create concise, actionable summaries of soil test results. Focus on key "
        "findings, recommendations, and potential issues. Keep responses under "
        "200 words and use simple, clear language."
    )

    WATER_SYSTEM_PROMPT = (
        "You are an agricultural AI assistant specializing in water quality "
        "analysis. Create concise, actionable summaries of water quality test "
        "results. Focus on safety concerns, agricultural implications, and "
        "treatment recommendations. Keep responses under 200 words and use "
        "simple, clear language."
    )

    SOIL_USER_TEMPLATE = """Analyze this soil test data and provide a summary:

pH Level: {ph}
Organic Matter: {organic_matter}%
Nitrogen: {nitrogen} ppm
Phosphorus: {phosphorus} ppm
Potassium: {potassium} ppm
Location: {county}
Test Date: {test_date}

Please provide an executive summary focusing on the soil health, nutrient status, and farming recommendations."""

    WATER_USER_TEMPLATE = """Analyze this water quality data and provide a summary:

{data}

Please provide an executive summary focusing on water safety, agricultural use suitability, and any treatment recommendations."""

    def system_prompt(self, report_type: ReportType) -> str:
        """System prompt for a report type."""
        if report_type == ReportType.SOIL:
            return self.SOIL_SYSTEM_PROMPT
        return self.WATER_SYSTEM_PROMPT

    def format(self, report_type: ReportType, data: dict[str, Any]) -> str:
        """Render report data into the user prompt."""
        if report_type == ReportType.SOIL:
            return self.SOIL_USER_TEMPLATE.format(
                ph=_value(data, "pH"),
                organic_matter=_value(data, "organicMatter"),
                nitrogen=_value(data, "nitrogen"),
                phosphorus=_value(data, "phosphorus"),
                potassium=_value(data, "potassium"),
                county=_value(data, "county"),
                test_date=_value(data, "testDate"),
            )
        return self.WATER_USER_TEMPLATE.format(
            data=json.dumps(data, indent=2, default=str),
        )

    def build_prompt(
        self,
        report_type: ReportType,
        data: dict[str, Any],
    ) -> tuple[str, str]:
        """Build the complete prompt.

        Returns:
            Tuple of (system_prompt, user_prompt).
        """
        return self.system_prompt(report_type), self.format(report_type, data)


def _value(data: dict[str, Any], key: str) -> Any:
    return data.get(key) or "N/A"

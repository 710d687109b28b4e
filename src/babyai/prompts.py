"""Prompt templates for baby-tracking analysis. Placeholders use {{name}}."""
from __future__ import annotations
import re
from enum import Enum
from typing import Mapping, Union

BABY_TRACKING_SYSTEM_PROMPT = """You are a helpful baby care assistant that analyzes tracking data to provide insights for parents and caregivers. You have expertise in infant development, sleep patterns, feeding schedules, and general baby care.

Your role is to:
1. Analyze patterns in baby tracking data (sleep, feeding, diapers, growth)
2. Provide actionable insights and recommendations
3. Identify potential concerns that may warrant discussion with a pediatrician
4. Offer encouragement and support to caregivers

Guidelines:
- Be concise and practical in your responses
- Focus on patterns and trends rather than individual data points
- Always recommend consulting a pediatrician for medical concerns
- Use age-appropriate recommendations based on the baby's age
- Be supportive and non-judgmental in your tone
- Provide specific, actionable suggestions when possible"""

SLEEP_ANALYSIS_PROMPT = """Analyze the following sleep data for a baby and provide insights:

Baby Age: {{babyAgeMonths}} months
Recent Sleep Data (last 7 days):
{{sleepData}}

Please provide:
1. Analysis of sleep patterns (total sleep, nap frequency, night sleep quality)
2. Current wake window assessment
3. Predicted optimal next nap time based on patterns
4. Any concerns or recommendations for improving sleep

Keep your response concise and actionable."""

FEEDING_ANALYSIS_PROMPT = """Analyze the following feeding data for a baby and provide insights:

Baby Age: {{babyAgeMonths}} months
Recent Feeding Data (last 7 days):
{{feedingData}}

Please provide:
1. Analysis of feeding patterns (frequency, amounts, timing)
2. Assessment of feeding consistency
3. Suggested feeding schedule based on patterns
4. Any concerns or recommendations

Keep your response concise and actionable."""

WEEKLY_SUMMARY_PROMPT = """Generate a weekly summary for the following baby tracking data:

Baby Name: {{babyName}}
Baby Age: {{babyAgeMonths}} months
Week: {{weekStart}} to {{weekEnd}}

Sleep Summary:
{{sleepSummary}}

Feeding Summary:
{{feedingSummary}}

Diaper Summary:
{{diaperSummary}}

Growth Data:
{{growthData}}

Activities:
{{activitiesSummary}}

Please provide:
1. Overall assessment of the week
2. Key patterns and trends observed
3. Positive highlights to celebrate
4. Areas that may need attention
5. Recommendations for the coming week

Keep your response supportive and actionable."""

ANOMALY_DETECTION_PROMPT = """Review the following baby tracking data and identify any anomalies or concerns:

Baby Age: {{babyAgeMonths}} months
Recent Data (last 48 hours):

Sleep:
{{sleepData}}

Feeding:
{{feedingData}}

Diapers:
{{diaperData}}

Please identify:
1. Any significant deviations from normal patterns
2. Potential concerns that warrant monitoring
3. Issues that may need pediatrician consultation
4. Recommendations for addressing any concerns

Be specific about what patterns are unusual and why they may be concerning."""


class PromptType(str, Enum):
    SLEEP_ANALYSIS = "sleep_analysis"
    FEEDING_ANALYSIS = "feeding_analysis"
    WEEKLY_SUMMARY = "weekly_summary"
    ANOMALY_DETECTION = "anomaly_detection"


_TEMPLATES = {
    PromptType.SLEEP_ANALYSIS: SLEEP_ANALYSIS_PROMPT,
    PromptType.FEEDING_ANALYSIS: FEEDING_ANALYSIS_PROMPT,
    PromptType.WEEKLY_SUMMARY: WEEKLY_SUMMARY_PROMPT,
    PromptType.ANOMALY_DETECTION: ANOMALY_DETECTION_PROMPT,
}


def get_prompt_template(prompt_type: Union[PromptType, str]) -> str:
    """Raises ValueError for an unknown prompt type."""
    return _TEMPLATES[PromptType(prompt_type)]


def fill_prompt_template(template: str, variables: Mapping[str, object]) -> str:
    """
    Substitute {{key}} for every key in *variables*. Placeholders without a
    value are left as-is.
    """
    result = template
    for key, value in variables.items():
        result = re.sub(r"\{\{" + re.escape(key) + r"\}\}", lambda _m: str(value), result)
    return result

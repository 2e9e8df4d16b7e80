"""LLM prompt templates for ARIA."""

# ============================================================================
# WEEKLY SUMMARY PROMPTS
# ============================================================================

WEEKLY_SUMMARY_SYSTEM = "You are ARIA, an AI sports performance analyst."

WEEKLY_SUMMARY_USER = """Generate a weekly summary for solo athlete {athlete_name}.

WEEKLY METRICS:
- Average Readiness: {readiness_avg:.1f}% ({readiness_trend})
- Average Sleep: {sleep_avg:.1f} hours ({sleep_trend})
- Current ACWR: {acwr_latest:.2f}
- Latest Strain: {strain_latest:.1f}

Generate a markdown-formatted weekly summary that includes:
1. **Week Overview** - Brief summary of performance
2. **Key Metrics** - Analysis of readiness, sleep, ACWR, and strain
3. **Performance Insights** - 3-4 bullet points highlighting important trends
4. **Areas of Focus** - What to pay attention to based on the data
5. **Next Week Goals** - Specific recommendations for improvement

Keep the tone motivational and personal. Be specific about what the data means.
Limit to 300 words maximum."""

WEEKLY_SUMMARY_MAX_TOKENS = 500
WEEKLY_SUMMARY_TEMPERATURE = 0.7


# ============================================================================
# LIVE SESSION PROMPTS
# ============================================================================

METRIC_LABELS = {
    "velocity_loss": "velocity loss",
    "hr_drift": "heart rate drift",
}

LIVE_ADJUSTMENT_PROMPT = (
    "KAI detected high {metric_label} ({percent:.1f}%). "
    "Automatically reduced target load by {reduction:.0f}% to optimize performance "
    "and prevent overexertion."
)


def build_live_adjustment_prompt(metric: str, value: float, delta: float) -> str:
    """Coach-facing message for an automatic in-session load change."""
    return LIVE_ADJUSTMENT_PROMPT.format(
        metric_label=METRIC_LABELS.get(metric, metric),
        percent=value * 100,
        reduction=abs(delta) * 100,
    )

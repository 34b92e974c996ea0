"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any business rule that references a fixed value should import it from
here instead of hardcoding.  This avoids drift between apps that use the
same value.
"""

# ── Closing review ──────────────────────────────────────────────────
REVIEW_RATING_MIN: int = 1
REVIEW_RATING_MAX: int = 5

# ── Gender preference ───────────────────────────────────────────────
# Values a patient may send to mean "any physiotherapist".
NO_GENDER_PREFERENCE_VALUES: frozenset[str] = frozenset(
    {"", "no-preference", "no_preference", "none", "any"}
)

"""
Example: Raking a survey sample to census margins and weighting scale items.

This demonstrates the full scalerake workflow:
1. Build a skewed survey sample with four demographics and ten scale items
2. Rake case weights to census proportions from raking.yaml
3. Apply weights to item scores and compare weighted vs raw means
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from scalerake import (
    RakingConfig,
    apply_weights,
    cases_from_frame,
    margin_report,
    summarize_items,
)

CONFIG_PATH = Path(__file__).parent / "raking.yaml"
ITEMS = [f"q{i}" for i in range(1, 11)]


def create_survey_data(n=800, seed=42):
    """Create an online-panel style sample that over-represents graduates."""
    rng = np.random.default_rng(seed)

    gender = rng.choice(["female", "male"], n, p=[0.58, 0.42])
    education = rng.choice(["primary", "secondary", "tertiary"], n, p=[0.10, 0.35, 0.55])
    ethnicity = rng.choice(["majority", "minority"], n, p=[0.88, 0.12])
    region = rng.choice(["north", "east", "south", "west"], n, p=[0.35, 0.15, 0.20, 0.30])

    # Item frequency codes 1-5; lower education reports higher frequencies
    shift = np.select(
        [education == "primary", education == "secondary"], [1.0, 0.5], default=0.0
    )
    items = np.clip(np.rint(rng.normal(2.5 + shift[:, None], 1.0, (n, len(ITEMS)))), 1, 5)

    data = pd.DataFrame({
        "respondent": np.arange(1, n + 1),
        "gender": gender,
        "education": education,
        "ethnicity": ethnicity,
        "region": region,
    })
    data = pd.concat([data, pd.DataFrame(items.astype(int), columns=ITEMS)], axis=1)

    # 2% skipped the ethnicity question
    data.loc[rng.random(n) < 0.02, "ethnicity"] = None
    return data


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("scalerake: Census Raking Example")
    print("=" * 60)

    print("\n[1/4] Loading configuration and survey data...")
    config = RakingConfig.from_yaml(CONFIG_PATH)
    survey = create_survey_data()
    cases = cases_from_frame(
        survey, "respondent", config.variables, ITEMS, item_range=config.item_range
    )
    print(f"  Respondents: {len(cases)}")

    print("\n[2/4] Raking to census margins...")
    n_complete = sum(case.is_complete(config.variables) for case in cases)
    margins = config.margin_specs(n_complete)
    result = config.engine().run(cases, margins)
    print(result.summary())

    print("\n[3/4] Margin check:")
    report = margin_report(cases, result.weights, margins)
    for row in report.itertuples(index=False):
        print(
            f"  {row.variable:10s} {row.category:10s} "
            f"sample={row.sample_share:.3f}  "
            f"weighted={row.weighted_count:7.1f}  target={row.target:7.1f}"
        )

    print("\n[4/4] Weighted item means:")
    weighted = apply_weights(cases, result.weights, skip_unweighted=True)
    summary = summarize_items(weighted, item_names=ITEMS)
    for item, row in summary.iterrows():
        print(
            f"  {item:4s} raw={row['unweighted_mean']:.3f}  "
            f"weighted={row['weighted_mean']:.3f}  shift={row['shift']:+.3f}"
        )

    print("\n" + "=" * 60)
    print("Complete! Item scores weighted to census margins.")
    print("=" * 60)


if __name__ == "__main__":
    main()

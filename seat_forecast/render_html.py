#!/usr/bin/env python3
"""
render_html.py — Static dashboard page for the aggregated election data.

Usage:
    python3 -m seat_forecast.render_html
    python3 -m seat_forecast.render_html --input out/election-2024.json --output /tmp/index.html
"""

import argparse
import html
import logging
import sys
from pathlib import Path

from seat_forecast.aggregate_data import load_aggregated_stats
from seat_forecast.config import (
    AGGREGATE_FILE, DATA_DIR, HTML_FILE, MANIFOLD_HOME, setup_logging,
)
from seat_forecast.parties import display_name, party_color, party_emoji
from seat_forecast.snapshot import SnapshotError

log = logging.getLogger('RenderHTML')

TITLE = 'Manifold UK General Election 2024'

# (link text, dataset key, numeric?) for the constituency grid
SORTERS = (
    ('Name', 'name', False),
    ('Labour probability', 'labourProbability', True),
    ('Conservative probability', 'conservativeProbability', True),
    ('Lib Dem probability', 'libDemProbability', True),
    ('Green probability', 'greenProbability', True),
    ('Reform probability', 'reformProbability', True),
    ('Other probability', 'otherProbability', True),
    ('Favourite margin', 'favouriteLead', True),
    ('Third place probability', 'thirdPlaceProbability', True),
)

# Clicking a sorter reorders #constituencies by that data-* key; clicking again flips direction.
# Empty numeric values sort below every real probability.
SORT_SCRIPT = """
const sorters = document.querySelectorAll("[data-sort]");

const sortKey = (element, key, numeric) => {
  const value = element.dataset[key];
  if (!numeric) return value;
  return value === "" ? -1 : parseFloat(value);
};

for (const sorter of sorters) {
  sorter.addEventListener("click", (e) => {
    const { sort: key, numeric } = e.target.dataset;
    const isNumeric = numeric === "true";
    const asc = e.target.dataset.asc === "true";
    const grid = document.getElementById("constituencies");
    const cards = Array.from(grid.children);
    cards.sort((a, b) => {
      const x = sortKey(a, key, isNumeric);
      const y = sortKey(b, key, isNumeric);
      const order = isNumeric ? x - y : x.localeCompare(y);
      return asc ? order : -order;
    });
    grid.replaceChildren(...cards);
    for (const other of sorters) other.removeAttribute("data-asc");
    e.target.dataset.asc = String(!asc);
  });
}
"""


def party_label(party):
    emoji = party_emoji(party)
    name = html.escape(display_name(party))
    swatch = f'<span style="color: {party_color(party)};">&#9632;</span>'
    return f'{swatch} {emoji} {name}' if emoji else f'{swatch} {name}'


def percent(value):
    return '' if value is None else f'{value:.0%}'


def render_summary_table(summaries):
    rows = ''
    for s in summaries:
        rows += f"""
        <tr>
            <td>{party_label(s.party)}</td>
            <td>{s.median}</td>
            <td>{s.mode}</td>
            <td>{s.lower_5th}&ndash;{s.upper_95th}</td>
            <td>{s.majority_percentage:.1%}</td>
        </tr>"""
    return f"""
    <table>
        <thead><tr><th>Party</th><th>Median</th><th>Mode</th><th>90% range</th><th>Majority</th></tr></thead>
        <tbody>{rows}
        </tbody>
    </table>"""


def render_favourites_table(winning):
    rows = ''.join(f"""
        <tr><td>{party_label(party)}</td><td>{count}</td></tr>""" for party, count in winning)
    return f"""
    <table>
        <thead><tr><th>Party</th><th>Seats where favourite</th></tr></thead>
        <tbody>{rows}
        </tbody>
    </table>"""


def data_attributes(name, stats):
    """data-name plus one data-* attribute per stats field; missing values are empty."""
    attrs = [f'data-name="{html.escape(name, quote=True)}"']
    for field, value in stats.to_dict().items():
        text = '' if value is None else repr(value)
        attrs.append(f'data-{field.replace("_", "-")}="{text}"')
    return ' '.join(attrs)


def render_sorters():
    items = ''.join(f"""
            <li><a style="cursor: pointer;" data-sort="{key}" data-numeric="{str(numeric).lower()}">{title}</a></li>"""
                    for title, key, numeric in SORTERS)
    return f"""
    <div>
        <p>Sort by:</p>
        <ul>{items}
        </ul>
    </div>"""


def render_constituency(aggregated):
    c = aggregated.probabilities
    stats = aggregated.stats
    name = html.escape(c.constituency)
    url = html.escape(c.manifold_url, quote=True)
    rows = ''.join(f"""
            <tr><td>{party_label(entry.party)}</td><td>{entry.probability:.0%}</td></tr>"""
                   for entry in c.parties)
    lead = f'<p>Favourite lead: {percent(stats.favourite_lead)}</p>' if stats.favourite_lead is not None else ''
    return f"""
    <div class="constituency" {data_attributes(c.constituency, stats)}>
        <h3>{name}</h3>{lead}
        <table>
            <tbody>{rows}
            </tbody>
        </table>
        <a href="{url}" target="_blank">See market on Manifold</a>
    </div>"""


def render_constituencies(constituencies):
    ordered = sorted(constituencies, key=lambda c: c.probabilities.constituency)
    cards = ''.join(render_constituency(c) for c in ordered)
    return f"""{render_sorters()}
    <div id="constituencies" style="display: grid; grid-template-columns: repeat(auto-fill, minmax(300px, 1fr)); gap: 1rem;">{cards}
    </div>"""


def render_html(stats):
    """Render the full dashboard page for an AggregatedStats."""
    fetched = stats.fetched_at
    trials = f'{stats.trials:,}' if stats.trials else 'many'
    threshold = stats.majority_threshold if stats.majority_threshold is not None else 'half'
    constituencies = render_constituencies(stats.constituencies)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{TITLE}</title>
    <style>
        body {{ margin: 0 auto; padding: 0 20px; max-width: 820px; font-family: -apple-system, "Segoe UI", Roboto, Arial, sans-serif; }}
        table {{ border-collapse: collapse; margin-bottom: 16px; }}
        th, td {{ padding: 4px 12px; text-align: left; border-bottom: 1px solid #e0e0e0; }}
    </style>
</head>
<body>
    <h1>{TITLE}</h1>
    <p>This page is a dashboard of data concerning the 2024 UK General Election based on data from the prediction market site <a href="{MANIFOLD_HOME}">Manifold</a>. It shows the current probability of each party in each constituency and various aggregations.</p>
    <p>Data fetched at {html.escape(fetched)}</p>
    <hr>
    <h2>Monte Carlo simulation results</h2>
    <p>A simulated election is run {trials} times. For each constituency, a party is picked at random using the implied probabilities of the market. The median is the middle number of seats won by that party across all the simulations. The majority column shows how often the party wins a majority (&gt;{threshold} seats).</p>
    {render_summary_table(stats.monte_carlo_summary)}
    <hr>
    <h2>Seat favourites</h2>
    {render_favourites_table(stats.winning_constituencies)}
    <hr>
    <h2>Constituencies</h2>
    {constituencies}
    <script>{SORT_SCRIPT}</script>
</body>
</html>
"""


def main(argv=None):
    parser = argparse.ArgumentParser(description='Render the election dashboard HTML')
    parser.add_argument('--input', type=Path, default=DATA_DIR / AGGREGATE_FILE,
                        help=f'Aggregate JSON to read (default: {DATA_DIR / AGGREGATE_FILE})')
    parser.add_argument('--output', type=Path, default=DATA_DIR / HTML_FILE,
                        help=f'HTML file to write (default: {DATA_DIR / HTML_FILE})')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        stats = load_aggregated_stats(args.input)
    except SnapshotError as e:
        log.error(f"Cannot render: {e}")
        sys.exit(1)

    page = render_html(stats)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(page, encoding='utf-8')
    log.info(f"Saved {args.output} ({len(stats.constituencies)} constituencies)")


if __name__ == '__main__':
    main()

from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, List

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>varobs merge report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    td.num { text-align: right; font-family: monospace; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>varobs merge report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>Observations</th><td><code>{{ input_path }}</code></td></tr>
      <tr><th>Strategy</th><td>{{ strategy }}</td></tr>
      <tr><th>Chunk size</th><td>{{ chunk_size }}</td></tr>
      <tr><th>Workers</th><td>{{ workers }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Counts</h3>
    <table>
      <tr><th>Records read</th><td class="num">{{ counts.records_total }}</td></tr>
      <tr><th>Site/alleles merged</th><td class="num">{{ counts.site_alleles }}</td></tr>
      <tr><th>Distinct sites</th><td class="num">{{ counts.sites }}</td></tr>
      <tr><th>Reference alleles</th><td class="num">{{ counts.ref_alleles }}</td></tr>
      <tr><th>Non-reference alleles</th><td class="num">{{ counts.alt_alleles }}</td></tr>
      <tr><th>Without allele coverage</th><td class="num">{{ counts.uncovered_alleles }}</td></tr>
    </table>
  </div>
</div>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Coverage</h3>
    <img src="{{ plots.coverage_hist }}" alt="coverage histogram">
  </div>
  <div class="card">
    <h3>Strand balance</h3>
    <img src="{{ plots.strand_fraction }}" alt="forward-strand fraction histogram">
  </div>
</div>

{% if top_sites %}
<h2>Most covered site/alleles</h2>
<table>
  <tr>
    <th>Site</th><th>Ref</th><th>Allele cov</th><th>Other cov</th><th>Total cov</th>
    <th>Allele fwd</th><th>RMS MAPQ</th><th>Best copy number</th>
  </tr>
  {% for row in top_sites %}
  <tr>
    <td><code>{{ row.site }}</code></td>
    <td>{{ "yes" if row.is_ref else "no" }}</td>
    <td class="num">{{ row.allele_coverage }}</td>
    <td class="num">{{ row.other_coverage }}</td>
    <td class="num">{{ row.total_coverage }}</td>
    <td class="num">{{ row.allele_forward_strand }}</td>
    <td class="num">{{ "%.1f"|format(row.rms_mapq) }}</td>
    <td class="num">{{ row.best_copies }}</td>
  </tr>
  {% endfor %}
</table>
{% endif %}

<h2>Outputs</h2>
<ul>
  <li><code>{{ merged_path }}</code> (merged observations, one per site/allele)</li>
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<h2>Interpretation notes</h2>
<ul>
  <li>Log-likelihoods are summed across reads; "best copy number" is the arg-max of the merged allele log-likelihoods.</li>
  <li>RMS MAPQ is <code>sqrt(square_map_q / total_coverage)</code>.</li>
  <li>Total coverage can exceed allele + other coverage when reads carry a third base.</li>
</ul>

<hr>
<p class="small">varobs {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    plots: Dict[str, str],
    top_sites: List[Dict[str, Any]] | None = None,
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        input_path=run.get("input_path"),
        strategy=run.get("strategy"),
        chunk_size=run.get("chunk_size"),
        workers=run.get("workers"),
        merged_path=run.get("merged_path"),
        counts=run.get("counts", {}),
        plots=plots,
        top_sites=top_sites or [],
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.debug("Rendered report to %s", out_path)
    return out_path

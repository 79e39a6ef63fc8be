"""SQLAdmin model and tool views."""

import asyncio

from sqladmin import BaseView, ModelView, expose
from starlette.requests import Request
from starlette.responses import HTMLResponse

from showtally.database import AsyncSessionLocal
from showtally.models.showtime import Showtime
from showtally.models.showtime_summary import ShowtimeSummary
from showtally.services.summary_maintainer import SummaryHealth, SummaryMaintainer
from showtally.tasks.summary_audit import run_summary_audit


class ShowtimeAdmin(ModelView, model=Showtime):
    column_list = [
        Showtime.id,
        Showtime.showtime_id,
        Showtime.movie_title,
        Showtime.cinema_name,
        Showtime.city,
        Showtime.start_time,
        Showtime.attributes,
        Showtime.showtime_count,
        Showtime.updated_at,
    ]
    column_searchable_list = [Showtime.movie_title, Showtime.cinema_name, Showtime.showtime_id]
    column_sortable_list = [Showtime.start_time, Showtime.showtime_count, Showtime.updated_at]
    # Writes must go through ingestion so the summaries stay in step
    can_create = False
    can_edit = False
    can_delete = False


class ShowtimeSummaryAdmin(ModelView, model=ShowtimeSummary):
    column_list = [
        ShowtimeSummary.id,
        ShowtimeSummary.representative_id,
        ShowtimeSummary.showtime_count,
        ShowtimeSummary.updated_at,
    ]
    column_sortable_list = [ShowtimeSummary.showtime_count, ShowtimeSummary.updated_at]
    can_create = False
    can_edit = False
    can_delete = False


_TOOLS_TEMPLATE = """\
{% extends "sqladmin/layout.html" %}
{% block content %}
<div class="container-fluid p-4">
  <h2>Summary Tools</h2>
  <form method="post" class="mt-3 d-flex align-items-center gap-2 flex-wrap">
    <button name="action" value="check" class="btn btn-outline-dark">Check Summaries</button>
    <button name="action" value="audit" class="btn btn-primary">Run Audit &amp; Repair</button>
  </form>
  {% if message %}
  <div class="alert alert-success mt-3">{{ message }}</div>
  {% endif %}

  {% if health %}
  <div class="mt-4">
    <h5>
      Summary health
      {% if health.healthy %}
        <span class="badge bg-success ms-2">Consistent</span>
      {% else %}
        <span class="badge bg-danger ms-2">Drift detected</span>
      {% endif %}
    </h5>
    <table class="table table-sm table-bordered mt-2" style="max-width:360px">
      <tbody>
        <tr><td>Showtimes</td><td class="text-end">{{ health.showtimes }}</td></tr>
        <tr><td>Distinct showings</td><td class="text-end">{{ health.showings }}</td></tr>
        <tr><td>Summaries</td><td class="text-end">{{ health.summaries }}</td></tr>
        <tr class="{{ 'table-danger' if health.stale else '' }}"><td>Stale</td><td class="text-end">{{ health.stale }}</td></tr>
        <tr class="{{ 'table-danger' if health.missing else '' }}"><td>Missing</td><td class="text-end">{{ health.missing }}</td></tr>
        <tr class="{{ 'table-danger' if health.duplicated else '' }}"><td>Duplicated</td><td class="text-end">{{ health.duplicated }}</td></tr>
        <tr class="{{ 'table-danger' if health.miscounted else '' }}"><td>Miscounted</td><td class="text-end">{{ health.miscounted }}</td></tr>
      </tbody>
    </table>
  </div>
  {% endif %}
</div>
{% endblock %}
"""


class SummaryToolsView(BaseView):
    name = "Tools"
    icon = "fa-wrench"

    @expose("/tools", methods=["GET", "POST"])
    async def tools(self, request: Request) -> HTMLResponse:
        message: str | None = None
        health: SummaryHealth | None = None

        if request.method == "POST":
            form = await request.form()
            action = form.get("action")
            if action == "check":
                async with AsyncSessionLocal() as db:
                    health = await SummaryMaintainer().check(db)
            elif action == "audit":
                asyncio.create_task(run_summary_audit())
                message = "Summary audit started in background."

        tmpl = self.templates.env.from_string(_TOOLS_TEMPLATE)
        content = await tmpl.render_async(
            request=request,
            message=message,
            health=health,
        )
        return HTMLResponse(content)

from __future__ import annotations

import allure
import pytest
from playwright.sync_api import Page

from playwright_hog import HogSession, assert_captured_count, assert_fired, assert_not_fired

# Requests to a reserved TLD never leave the machine: the route sees them first,
# then the browser fails DNS resolution and the page swallows the fetch error.
INGEST = "https://analytics.invalid"

PAGE = f"""
<button id="signup">Sign up</button>
<script>
  function send(path, body) {{
    fetch("{INGEST}" + path, {{method: "POST", mode: "no-cors", body: body}}).catch(() => {{}});
  }}
  send("/e/", JSON.stringify({{event: "$pageview", properties: {{path: "/"}}}}));
  document.getElementById("signup").addEventListener("click", () => {{
    setTimeout(() => send("/batch/", JSON.stringify({{batch: [
      {{event: "user_signed_up", properties: {{plan: "pro", seats: 3}}}},
      {{event: "plan_selected", properties: {{plan: "pro"}}}}
    ]}})), 150);
  }});
  fetch("{INGEST}/static/array.js").catch(() => {{}});
</script>
"""


@allure.feature("Analytics capture")
@allure.title("Events sent after a click are captured and matched")
@pytest.mark.e2e
def test_signup_events(page: Page, hog: HogSession) -> None:
    page.set_content(PAGE)
    assert_fired(hog, "$pageview", {"path": "/"})

    page.click("#signup")
    assert_fired(hog, "user_signed_up", {"plan": "pro"}, timeout=5)
    assert_fired(hog, "plan_selected")
    assert_not_fired(hog, "error_occurred", timeout=0.5)
    assert_captured_count(hog, 3)


@allure.feature("Analytics capture")
@allure.title("Missing events fail with a diagnostic")
@pytest.mark.e2e
def test_missing_event_diagnostic(page: Page, hog: HogSession) -> None:
    page.set_content(PAGE)
    assert_fired(hog, "$pageview")

    outcome = assert_fired(hog, "checkout_completed", timeout=0.3, soft=True)
    assert not outcome.passed
    assert "Events captured: [$pageview]" in outcome.message

"""Browser automation modules (Playwright).

* ``session`` — persistent context and the one-page-per-command scope.
* ``timing`` — human pacing delays and the command rate limiter.
* ``probe`` — polling waits for asynchronous UI state.
* ``steps`` — atomic actions that return ``StepResult`` values.
* ``scripts`` — in-page JavaScript used by probe and steps.

Anti-detection is handled by ``stealth`` (viewport, locale, init scripts).
"""

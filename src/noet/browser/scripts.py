"""In-page JavaScript evaluated through ``page.evaluate(script, args)``.

Each script is a single-argument arrow function. They share a small
locator runtime (``_RUNTIME``) that understands the strategies of
``noet.site.locators.Locator`` so selectors stay in the site profile and
never appear here. Scripts only read the DOM or perform one interaction;
deciding what the result means is done in Python.
"""

from __future__ import annotations

_RUNTIME = r"""
const norm = (s) => (s || '').replace(/\s+/g, ' ').trim();
const CLICKABLE = 'button, a, [role="button"], [role="menuitem"], [role="option"]';

const byText = (root, selector, labels, exactOnly, skip) => {
  const els = Array.from(root.querySelectorAll(selector)).filter((el) => !(skip && skip(el)));
  for (const label of labels) {
    const hit = els.filter((el) => norm(el.textContent) === label);
    if (hit.length) return hit;
  }
  if (exactOnly) return [];
  for (const label of labels) {
    const hit = els.filter((el) => norm(el.textContent).includes(label));
    if (hit.length) return hit;
  }
  return [];
};

const byAttr = (root, attr, loc) =>
  Array.from(root.querySelectorAll('[' + attr + ']')).filter((el) => {
    const v = el.getAttribute(attr) || '';
    return loc.exact ? v === loc.value : v.includes(loc.value);
  });

const findAll = (loc, root) => {
  root = root || document;
  switch (loc.strategy) {
    case 'css':
      try { return Array.from(root.querySelectorAll(loc.value)); } catch (e) { return []; }
    case 'placeholder':
      return byAttr(root, 'placeholder', loc);
    case 'aria_label':
      return byAttr(root, 'aria-label', loc);
    case 'text':
      return byText(root, CLICKABLE, [loc.value], loc.exact);
    default:
      return [];
  }
};

const locateAll = (locators, root) => {
  for (const loc of locators || []) {
    const found = findAll(loc, root);
    if (found.length) return found;
  }
  return [];
};

const locate = (locators, root) => locateAll(locators, root)[0] || null;

const humanClick = (el) => {
  const rect = el.getBoundingClientRect();
  const init = {
    bubbles: true,
    cancelable: true,
    view: window,
    clientX: rect.left + rect.width / 2,
    clientY: rect.top + rect.height / 2,
  };
  for (const type of ['mouseenter', 'mouseover', 'mousedown', 'mouseup', 'click']) {
    el.dispatchEvent(new MouseEvent(type, init));
  }
};

const resolveRoot = (rootLocators) => (rootLocators ? locate(rootLocators) : document);

const CLICKED = 'data-noet-clicked';
const wasClicked = (el) => !!el.closest('[' + CLICKED + ']') || !!el.querySelector('[' + CLICKED + ']');
"""


def _script(body: str) -> str:
    return "(args) => {\n" + _RUNTIME + body + "\n}"


# -- Probes ----------------------------------------------------------------

SELECTOR_EXISTS_JS = "(selector) => !!document.querySelector(selector)"

TARGET_EXISTS_JS = _script(
    r"""
  return !!locate(args.locators);
"""
)

IMAGE_SOURCES_JS = _script(
    r"""
  const root = resolveRoot(args.root);
  if (!root) return [];
  return Array.from(root.querySelectorAll('img')).map((img) => img.getAttribute('src') || '');
"""
)

# -- Extraction ------------------------------------------------------------

AUTH_STATUS_JS = _script(
    r"""
  const profile = locate(args.profile_link);
  return {
    has_post_button: !!locate(args.post_button),
    has_avatar: !!locate(args.avatar),
    profile_href: profile ? profile.href || '' : '',
  };
"""
)

LIST_ROWS_JS = _script(
    r"""
  const ancestors = (args.ancestors || []).join(', ');
  const rows = [];
  for (const control of locateAll(args.more_actions)) {
    let row = ancestors ? control.closest(ancestors) : null;
    if (!row) {
      row = control;
      for (let i = 0; i < args.hops && row; i++) row = row.parentElement;
    }
    if (!row) continue;
    const titleEl = locate(args.row_title, row);
    const link = locate(args.article_link, row);
    const dateEl = locate(args.row_date, row);
    rows.push({
      title: titleEl ? norm(titleEl.textContent) : '',
      href: link ? link.href || '' : '',
      text: norm(row.textContent),
      date: dateEl ? norm(dateEl.textContent) || dateEl.getAttribute('datetime') || '' : '',
    });
  }
  return rows;
"""
)

ARTICLE_PAGE_JS = _script(
    r"""
  const titleEl = locate(args.title);
  const bodyEl = locate(args.body);
  const timeEl = locate(args.time);
  return {
    title: titleEl ? norm(titleEl.textContent) : '',
    html: bodyEl ? bodyEl.innerHTML : '',
    tags: locateAll(args.hashtag).map((a) => norm(a.textContent)).filter(Boolean),
    published_at: timeEl ? timeEl.getAttribute('datetime') || '' : '',
    url: location.href,
  };
"""
)

# -- Interaction -----------------------------------------------------------

FILL_FIELD_JS = _script(
    r"""
  const el = locate(args.locators);
  if (!el) return { found: false };
  el.focus();
  el.dispatchEvent(new FocusEvent('focus', { bubbles: true }));
  if (el.tagName === 'TEXTAREA' || el.tagName === 'INPUT') {
    const proto = el.tagName === 'TEXTAREA' ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
    const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
    setter.call(el, args.value);
  } else if (el.isContentEditable) {
    if (args.html) el.innerHTML = args.value;
    else el.textContent = args.value;
  } else {
    return { found: true, editable: false };
  }
  el.dispatchEvent(new Event('input', { bubbles: true, composed: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
  if (args.blur) {
    el.blur();
    el.dispatchEvent(new FocusEvent('blur', { bubbles: true }));
  }
  return { found: true, editable: true };
"""
)

CLICK_TEXT_JS = _script(
    r"""
  const root = resolveRoot(args.root);
  if (!root) return { clicked: false, root_found: false };
  const hits = byText(root, args.selector || CLICKABLE, args.labels, args.exact, args.skip_clicked ? wasClicked : null);
  if (!hits.length) return { clicked: false, root_found: true };
  hits[0].setAttribute(CLICKED, '');
  humanClick(hits[0]);
  return { clicked: true, root_found: true, label: norm(hits[0].textContent) };
"""
)

CLICK_TARGET_JS = _script(
    r"""
  const all = locateAll(args.locators, resolveRoot(args.root));
  const el = all[args.index || 0];
  if (!el) return false;
  humanClick(el);
  return true;
"""
)

UPLOAD_FILE_JS = _script(
    r"""
  const el = locate(args.locators);
  if (!el) return { found: false };
  const bin = atob(args.data);
  const bytes = new Uint8Array(bin.length);
  for (let i = 0; i < bin.length; i++) bytes[i] = bin.charCodeAt(i);
  const file = new File([bytes], args.filename, { type: args.mime_type });
  const dt = new DataTransfer();
  dt.items.add(file);
  if (el.tagName === 'INPUT' && el.type === 'file') {
    el.files = dt.files;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return { found: true, mode: 'input' };
  }
  el.focus();
  for (const type of ['dragenter', 'dragover', 'drop']) {
    el.dispatchEvent(new DragEvent(type, { bubbles: true, cancelable: true, dataTransfer: dt }));
  }
  return { found: true, mode: 'drop' };
"""
)

MAGAZINE_ADD_JS = _script(
    r"""
  for (const item of locateAll(args.item)) {
    const nameEl = locate(args.name, item);
    const name = norm(nameEl ? nameEl.textContent : '');
    if (name !== args.magazine) continue;
    const add = locate(args.add, item);
    if (!add) return { found: true, clicked: false };
    humanClick(add);
    return { found: true, clicked: true };
  }
  return { found: false, clicked: false };
"""
)

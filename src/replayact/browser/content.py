# -*- coding: utf-8 -*-
# Copyright (c) 2024 OSU Natural Language Processing Group
#
# Licensed under the OpenRAIL-S License;
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.licenses.ai/ai-pubs-open-rails-vz1
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Script injected into every page. It exposes ``window.__replayact.handle(message)``,
the page side of ``PageBridge``: action execution, element inspection, page
info, an operator overlay and a small console error log.
"""

CONTENT_SCRIPT = r"""
(() => {
  if (window.__replayact) { return; }

  const MAX_ERRORS = 20;
  const MAX_PER_KIND = 30;
  const errorLog = [];

  const wait = (ms) => new Promise((resolve) => setTimeout(resolve, ms));

  function fail(name, message) {
    const err = new Error(message);
    err.name = name;
    return err;
  }

  function logError(type, message) {
    errorLog.push({ type: type, message: message, timestamp: Date.now() });
    if (errorLog.length > MAX_ERRORS) { errorLog.shift(); }
  }

  const origError = console.error;
  console.error = function (...args) {
    logError('console.error', args.map((a) => String(a)).join(' '));
    origError.apply(console, args);
  };
  const origWarn = console.warn;
  console.warn = function (...args) {
    logError('console.warn', args.map((a) => String(a)).join(' '));
    origWarn.apply(console, args);
  };
  window.addEventListener('error', (e) => logError('error', `${e.message} at ${e.filename}:${e.lineno}`));
  window.addEventListener('unhandledrejection', (e) => logError('promise_rejection', String(e.reason)));

  // ---- selectors ----

  function generateSelector(el) {
    if (el.id) { return `#${CSS.escape(el.id)}`; }
    if (typeof el.className === 'string' && el.className.trim()) {
      const classes = el.className.split(/\s+/).filter((c) => c);
      const selector = '.' + classes.map((c) => CSS.escape(c)).join('.');
      try {
        if (document.querySelectorAll(selector).length === 1) { return selector; }
      } catch (e) { /* invalid class names fall through */ }
    }
    const path = [];
    let current = el;
    while (current && current !== document.body && current !== document.documentElement) {
      let part = current.tagName.toLowerCase();
      if (current.parentElement) {
        const index = Array.from(current.parentElement.children).indexOf(current) + 1;
        part += `:nth-child(${index})`;
      }
      path.unshift(part);
      current = current.parentElement;
    }
    return path.length ? 'body > ' + path.join(' > ') : 'body';
  }

  // ---- inspection ----

  function isVisible(el) {
    if (!el.isConnected) { return false; }
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') { return false; }
    const rect = el.getBoundingClientRect();
    return rect.width > 0 && rect.height > 0;
  }

  function labelFor(el) {
    if (el.labels && el.labels.length) { return el.labels[0].textContent.trim(); }
    if (el.id) {
      const label = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
      if (label) { return label.textContent.trim(); }
    }
    return el.getAttribute('aria-label') || el.getAttribute('name') || '';
  }

  function visibleText(el) {
    return (el.innerText || el.textContent || el.value || '').trim().slice(0, 100);
  }

  function inspectPage() {
    const inputs = Array.from(document.querySelectorAll('input, textarea, select'))
      .filter((el) => el.type !== 'hidden' && isVisible(el))
      .slice(0, MAX_PER_KIND)
      .map((el) => ({
        type: 'input',
        tag: el.tagName.toLowerCase(),
        inputType: el.type || '',
        label: labelFor(el),
        placeholder: el.getAttribute('placeholder') || '',
        selector: generateSelector(el),
      }));
    const buttons = Array.from(document.querySelectorAll('button, input[type="submit"], input[type="button"], [role="button"]'))
      .filter(isVisible)
      .slice(0, MAX_PER_KIND)
      .map((el) => ({ type: 'button', tag: el.tagName.toLowerCase(), text: visibleText(el), selector: generateSelector(el) }));
    const links = Array.from(document.querySelectorAll('a[href]'))
      .filter(isVisible)
      .slice(0, MAX_PER_KIND)
      .map((el) => ({ type: 'link', tag: 'a', text: visibleText(el), href: el.href, selector: generateSelector(el) }));
    return inputs.concat(buttons, links);
  }

  // ---- actions ----

  function find(selector) {
    const el = document.querySelector(selector);
    if (!el) { throw fail('ElementNotFound', `Element not found: ${selector}`); }
    return el;
  }

  function requireString(text) {
    if (typeof text !== 'string') {
      throw fail('TypeError', `Invalid text value: expected string, got ${typeof text}`);
    }
  }

  function mouseEvent(type, x, y) {
    return new MouseEvent(type, { bubbles: true, cancelable: true, view: window, clientX: x, clientY: y });
  }

  async function click(selector, x, y) {
    const el = find(selector);
    if (x !== undefined && x !== null && y !== undefined && y !== null) {
      const rect = el.getBoundingClientRect();
      el.dispatchEvent(mouseEvent('click', rect.left + x, rect.top + y));
    } else {
      el.scrollIntoView({ behavior: 'smooth', block: 'center' });
      await wait(300);
      el.click();
    }
  }

  async function clickText(text) {
    const needle = String(text).toLowerCase();
    const candidates = document.querySelectorAll('a, button, [role="button"], [onclick]');
    for (const el of candidates) {
      if ((el.textContent || '').trim().toLowerCase().includes(needle)) {
        el.scrollIntoView({ behavior: 'smooth', block: 'center' });
        await wait(300);
        el.click();
        return { clicked: (el.textContent || '').trim().slice(0, 100) };
      }
    }
    throw fail('NoMatchingElement', `No clickable element found containing text: "${text}"`);
  }

  async function typeText(selector, text) {
    const el = find(selector);
    requireString(text);
    el.scrollIntoView({ behavior: 'smooth', block: 'center' });
    await wait(300);
    el.focus();
    el.value = '';
    for (const ch of text) {
      el.value += ch;
      el.dispatchEvent(new Event('input', { bubbles: true }));
      await wait(50);
    }
    el.dispatchEvent(new Event('change', { bubbles: true }));
  }

  async function scrollPage(x, y) {
    window.scrollTo({ left: x || 0, top: y || 0, behavior: 'smooth' });
    await wait(500);
  }

  function navigate(url) {
    // let the reply leave the page before it unloads
    setTimeout(() => { window.location.href = url; }, 0);
    return { navigatingTo: url };
  }

  async function upload(selector) {
    const input = document.querySelector(selector);
    if (!input || input.type !== 'file') {
      throw fail('ElementNotFound', `File input not found: ${selector}`);
    }
    input.scrollIntoView({ behavior: 'smooth', block: 'center' });
    await wait(500);
    input.click();
    return { pickerOpened: true };
  }

  async function clickAt(x, y) {
    const el = document.elementFromPoint(x, y);
    if (!el) { throw fail('ElementNotFound', `No element found at coordinates: ${x}, ${y}`); }
    el.dispatchEvent(mouseEvent('mousedown', x, y));
    await wait(50);
    el.dispatchEvent(mouseEvent('mouseup', x, y));
    await wait(50);
    el.dispatchEvent(mouseEvent('click', x, y));
    return { tag: el.tagName.toLowerCase() };
  }

  async function typeAtCursor(text) {
    requireString(text);
    const el = document.activeElement;
    if (!el) { throw fail('ElementNotFound', 'No element is focused for typing'); }
    if (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement) {
      const current = el.value;
      const start = el.selectionStart === null ? current.length : el.selectionStart;
      const end = el.selectionEnd === null ? start : el.selectionEnd;
      el.value = current.substring(0, start) + text + current.substring(end);
      el.selectionStart = el.selectionEnd = start + text.length;
      el.dispatchEvent(new Event('input', { bubbles: true }));
      el.dispatchEvent(new Event('change', { bubbles: true }));
      return;
    }
    for (const ch of text) {
      el.dispatchEvent(new KeyboardEvent('keydown', { key: ch, bubbles: true, cancelable: true }));
      el.dispatchEvent(new KeyboardEvent('keypress', { key: ch, bubbles: true, cancelable: true }));
      if (el.isContentEditable) { document.execCommand('insertText', false, ch); }
      el.dispatchEvent(new KeyboardEvent('keyup', { key: ch, bubbles: true, cancelable: true }));
      await wait(50);
    }
  }

  const KEY_MAP = {
    enter: 'Enter', tab: 'Tab', escape: 'Escape', backspace: 'Backspace',
    delete: 'Delete', space: ' ', return: 'Enter',
  };

  async function pressKey(key) {
    const el = document.activeElement || document.body;
    const mapped = KEY_MAP[String(key).toLowerCase()] || key;
    el.dispatchEvent(new KeyboardEvent('keydown', { key: mapped, code: mapped, bubbles: true, cancelable: true }));
    await wait(50);
    el.dispatchEvent(new KeyboardEvent('keyup', { key: mapped, code: mapped, bubbles: true, cancelable: true }));
    return { key: mapped };
  }

  function mouseMove(x, y) {
    const el = document.elementFromPoint(x, y);
    if (el) { el.dispatchEvent(mouseEvent('mousemove', x, y)); }
  }

  async function executeAction(action) {
    switch (action.action) {
      case 'click': return click(action.selector, action.x, action.y);
      case 'click_text': return clickText(action.text);
      case 'type': return typeText(action.selector, action.text === undefined ? '' : action.text);
      case 'scroll': return scrollPage(action.x, action.y);
      case 'navigate': return navigate(action.url);
      case 'upload': return upload(action.selector);
      case 'wait': return wait(action.duration || 1000);
      case 'click_coordinates': return clickAt(action.x, action.y);
      case 'type_at_cursor': return typeAtCursor(action.text === undefined ? '' : action.text);
      case 'key_press': return pressKey(action.key);
      case 'mouse_move': return mouseMove(action.x, action.y);
      case 'noop': return undefined;
      default: throw fail('UnknownAction', `Unknown action: ${action.action}`);
    }
  }

  // ---- overlay ----

  let overlay = null;

  function ensureOverlay() {
    if (overlay && overlay.isConnected) { return overlay; }
    overlay = document.createElement('div');
    overlay.id = '__replayact_overlay';
    overlay.style.cssText = 'position:fixed;bottom:16px;right:16px;z-index:2147483647;width:320px;' +
      'max-height:240px;overflow:auto;background:rgba(20,20,20,.88);color:#fff;font:12px sans-serif;' +
      'padding:10px;border-radius:8px;pointer-events:none;';
    overlay.innerHTML = '<div data-role="status"></div><div data-role="progress" style="opacity:.7"></div>' +
      '<div data-role="messages"></div>';
    (document.body || document.documentElement).appendChild(overlay);
    return overlay;
  }

  function showOverlay(clear) {
    const el = ensureOverlay();
    el.style.display = 'block';
    if (clear) { el.querySelector('[data-role="messages"]').innerHTML = ''; }
  }

  function updateOverlay(status, progress) {
    showOverlay(false);
    overlay.querySelector('[data-role="status"]').textContent = status || '';
    overlay.querySelector('[data-role="progress"]').textContent = progress || '';
  }

  function addOverlayMessage(message, messageType) {
    showOverlay(false);
    const line = document.createElement('div');
    line.textContent = message;
    if (messageType === 'error') { line.style.color = '#ff8a80'; }
    overlay.querySelector('[data-role="messages"]').appendChild(line);
  }

  function hideOverlay() {
    if (overlay) { overlay.style.display = 'none'; }
  }

  // ---- dispatch ----

  async function handle(message) {
    try {
      switch (message.type) {
        case 'ping':
          return { success: true };
        case 'get_page_info':
          return {
            success: true,
            data: {
              url: window.location.href,
              title: document.title,
              readyState: document.readyState,
              viewportWidth: window.innerWidth,
              viewportHeight: window.innerHeight,
            },
          };
        case 'inspect_page':
          return { success: true, data: inspectPage() };
        case 'execute_action':
          return { success: true, result: await executeAction(message.action || {}) };
        case 'show_overlay':
          showOverlay(true);
          return { success: true };
        case 'update_overlay':
          updateOverlay(message.status, message.progress);
          return { success: true };
        case 'add_overlay_message':
          addOverlayMessage(message.message, message.messageType);
          return { success: true };
        case 'hide_overlay':
          hideOverlay();
          return { success: true };
        case 'clear_error_logs':
          errorLog.length = 0;
          return { success: true };
        case 'get_error_logs':
          return { success: true, data: errorLog.slice(-10) };
        default:
          return { success: false, error: `Unknown message type: ${message.type}`, errorKind: 'UnknownMessage' };
      }
    } catch (error) {
      return {
        success: false,
        error: error instanceof Error ? error.message : String(error),
        errorKind: error instanceof Error ? error.name : 'Error',
      };
    }
  }

  window.__replayact = { handle: handle, generateSelector: generateSelector };
})();
"""

HANDLE_EXPRESSION = "(message) => window.__replayact.handle(message)"

PRESENCE_EXPRESSION = "() => typeof window.__replayact !== 'undefined'"

"""Live-reload client — script injected into served HTML pages.

The injected script:
1. Opens a WebSocket to ``/__kiln/reload`` on the serving host
2. On ``reload`` messages, reloads the page
3. On ``css`` messages, re-fetches matching ``<link rel="stylesheet">``
   elements with a cache-busting query (no reload)
4. On ``error`` messages, shows a dismissable build-error toast
"""

from __future__ import annotations

RELOAD_PATH = "/__kiln/reload"

# The script injected before </body>.  Native WebSocket, no dependencies.
_HMR_SCRIPT = """\
<script data-kiln-reload>
(function() {
  var proto = location.protocol === 'https:' ? 'wss://' : 'ws://';
  var page = encodeURIComponent(location.pathname);
  var ws = new WebSocket(proto + location.host + '%(path)s?page=' + page);
  ws.onmessage = function(e) {
    var msg;
    try { msg = JSON.parse(e.data); } catch (x) { return; }
    if (msg.type === 'reload') {
      location.reload();
    } else if (msg.type === 'css') {
      _injectStyles(msg.paths || []);
    } else if (msg.type === 'error') {
      _showError(msg);
    }
  };
  ws.onclose = function() {
    setTimeout(function() { location.reload(); }, 2000);
  };
  function _injectStyles(paths) {
    var links = document.querySelectorAll('link[rel="stylesheet"]');
    for (var i = 0; i < links.length; i++) {
      var url = new URL(links[i].href, location.href);
      if (url.host !== location.host || paths.indexOf(url.pathname) === -1) continue;
      url.searchParams.set('kiln', Date.now());
      var next = links[i].cloneNode();
      next.href = url.toString();
      next.onload = (function(old) { return function() { old.remove(); }; })(links[i]);
      links[i].parentNode.insertBefore(next, links[i].nextSibling);
    }
    _dismissError();
  }
  function _showError(d) {
    _dismissError();
    var el = document.createElement('div');
    el.id = 'kiln-error-toast';
    el.style.cssText = 'position:fixed;bottom:1rem;right:1rem;max-width:480px;'
      + 'background:#2d1010;border:1px solid #e74c3c;border-radius:8px;'
      + 'padding:1rem 1.25rem;font-family:ui-monospace,monospace;font-size:0.85rem;'
      + 'color:#f0a0a0;z-index:99999;box-shadow:0 4px 24px rgba(0,0,0,0.4);'
      + 'line-height:1.5;word-break:break-word;white-space:pre-wrap';
    var title = document.createElement('strong');
    title.style.cssText = 'display:block;color:#e74c3c;margin-bottom:0.25rem';
    title.textContent = 'Error in ' + (d.asset || 'build') + '/' + (d.stage || '');
    var msg = document.createElement('div');
    msg.textContent = d.message || '';
    var loc = document.createElement('div');
    loc.style.cssText = 'margin-top:0.5rem;color:#9e9e9e;font-size:0.75rem';
    loc.textContent = d.file || '';
    var close = document.createElement('button');
    close.textContent = 'Dismiss';
    close.style.cssText = 'margin-top:0.75rem;padding:0.25rem 0.75rem;'
      + 'background:#3a1515;border:1px solid #e74c3c;border-radius:4px;'
      + 'color:#e0e0e0;cursor:pointer;font-family:inherit;font-size:0.8rem';
    close.onclick = _dismissError;
    el.appendChild(title);
    el.appendChild(msg);
    el.appendChild(loc);
    el.appendChild(close);
    document.body.appendChild(el);
  }
  function _dismissError() {
    var old = document.getElementById('kiln-error-toast');
    if (old) old.remove();
  }
})();
</script>
""" % {"path": RELOAD_PATH}


def inject_reload_script(body: str) -> str:
    """Insert the live-reload script into an HTML document.

    Injects just before ``</body>`` (or ``</html>``), appending when the
    document has neither closing tag.

    """
    if "data-kiln-reload" in body:
        return body
    if "</body>" in body:
        return body.replace("</body>", _HMR_SCRIPT + "</body>", 1)
    if "</html>" in body:
        return body.replace("</html>", _HMR_SCRIPT + "</html>", 1)
    return body + _HMR_SCRIPT

"""
JavaScript functions evaluated against the live DOM.

They are data, not logic: when the site's markup moves, these strings (and the
selector/keyword lists in ExtractorConfig) are what changes. Each one is a pure
function of the current document plus a single JSON argument.
"""

# Scroll step by step until the page bottom or the wall-clock ceiling, whichever first.
# arg: {step, interval, ceiling}
SCROLL_TO_END = """
async ({step, interval, ceiling}) => {
    await new Promise((resolve) => {
        let totalHeight = 0;
        const timer = setInterval(() => {
            window.scrollBy(0, step);
            totalHeight += step;
            if (totalHeight >= document.body.scrollHeight) {
                clearInterval(timer);
                resolve();
            }
        }, interval);
        setTimeout(() => { clearInterval(timer); resolve(); }, ceiling);
    });
    return window.scrollY;
}
"""

# Song page. arg: {readySelector, styleKeywords, expandMarkers}
SONG_DETAILS = """
({readySelector, styleKeywords, expandMarkers}) => {
    const text = (el) => (el && el.textContent ? el.textContent.trim() : '');

    const artistLink = document.querySelector(readySelector);
    const artist = artistLink ? text(artistLink) : null;

    let title = text(document.querySelector('h1'));
    if (!title) {
        const og = document.querySelector('meta[property="og:title"]');
        title = og ? (og.getAttribute('content') || '') : '';
    }

    const ogImage = document.querySelector('meta[property="og:image"]');
    const coverUrl = ogImage ? ogImage.getAttribute('content') : null;

    // style: a div[title] holding a comma separated, genre-looking tag list
    let style = '';
    const keywordRe = new RegExp(styleKeywords.join('|'), 'i');
    for (const div of document.querySelectorAll('div[title]')) {
        const t = div.getAttribute('title');
        if (t && t.includes(',') && t.length > 20 && t.length < 2000 && keywordRe.test(t)) {
            style = t;
            break;
        }
    }
    if (!style) {
        const container = document.querySelector('div.my-2 div.relative');
        const inner = container ? container.querySelector('div[title]') : null;
        if (inner) style = inner.getAttribute('title') || text(inner);
    }

    // description: the long span whose parent carries the More/Less toggle
    let description = '';
    for (const span of document.querySelectorAll('div span')) {
        const t = text(span);
        if (t.length > 50 && t.length < 3000) {
            const parent = span.parentElement;
            if (parent && expandMarkers.some((m) => parent.innerHTML.includes(m))) {
                description = t;
                break;
            }
        }
    }
    if (!description) {
        const span = document.querySelector('div[class*="whitespace-normal"] > span');
        if (span && span.textContent.length > 30) description = text(span);
    }

    return { title, artist, coverUrl, style, description };
}
"""

# Playlist page. arg: {playlistId, songAnchorSelector, idPattern}
PLAYLIST_DETAILS = """
({playlistId, songAnchorSelector, idPattern}) => {
    const idRe = new RegExp('/song/(' + idPattern + ')', 'i');
    const seen = new Set();
    const songs = [];
    const short = (el) => {
        const t = el && el.textContent ? el.textContent.trim() : '';
        return t.length > 0 && t.length < 100 ? t : '';
    };

    document.querySelectorAll(songAnchorSelector).forEach((a) => {
        const m = (a.getAttribute('href') || a.href || '').match(idRe);
        if (!m) return;
        const id = m[1].toLowerCase();
        if (id === playlistId || seen.has(id)) return;
        seen.add(id);

        let title = '';
        let artist = '';
        const card = a.closest('[class*="card"], [class*="item"], [class*="track"], [class*="song"], div');
        if (card) {
            title = short(card.querySelector('h1, h2, h3, h4, [class*="title"], [class*="name"], p'));
            const artistEl = card.querySelector('[class*="artist"], [class*="creator"], [class*="author"]');
            if (artistEl) artist = artistEl.textContent.trim();
        }
        if (!title) title = short(a);
        songs.push({ identifier: id, title, artist });
    });

    const heading = document.querySelector('h1');
    const creatorLink = document.querySelector('a[href^="/@"]');
    const descEl = document.querySelector('span.line-clamp-3');

    return {
        title: heading ? heading.textContent.trim() : '',
        description: descEl ? descEl.textContent.trim() : '',
        creatorHref: creatorLink ? creatorLink.getAttribute('href') : null,
        songs,
        bodyHtml: songs.length === 0 ? document.body.innerHTML : '',
    };
}
"""

# Profile page, __NEXT_DATA__ route. No arg.
PROFILE_NEXT_DATA = """
() => {
    const el = document.getElementById('__NEXT_DATA__');
    if (!el) return null;
    try {
        const pageProps = (JSON.parse(el.textContent).props || {}).pageProps || {};
        const playlists = pageProps.playlists
            || pageProps.userPlaylists
            || (pageProps.profile || {}).playlists
            || (pageProps.user || {}).playlists
            || null;
        return Array.isArray(playlists) ? playlists : null;
    } catch (e) {
        return null;
    }
}
"""

# Profile page, DOM route: playlist anchors plus whatever title/cover/count sits near them.
PROFILE_PLAYLIST_CARDS = """
() => {
    const results = [];
    const seen = new Set();
    document.querySelectorAll('a[href*="/playlist/"]').forEach((a) => {
        const m = (a.getAttribute('href') || a.href || '').match(/\\/playlist\\/([a-f0-9-]+)/i);
        if (!m || seen.has(m[1].toLowerCase())) return;
        seen.add(m[1].toLowerCase());

        const texts = [];
        let coverUrl = null;
        let countText = null;
        let container = a.parentElement;
        for (let i = 0; i < 5 && container; i++) {
            container.querySelectorAll('p, span, h1, h2, h3, h4, h5, h6, div').forEach((el) => {
                const t = el.textContent.trim();
                if (t.length > 0 && t.length < 80 && !t.includes('http')) texts.push(t);
            });
            if (!coverUrl) {
                const img = container.querySelector('img');
                if (img && img.src && !img.src.includes('avatar') && !img.src.includes('profile')) coverUrl = img.src;
            }
            if (!countText) {
                for (const el of container.querySelectorAll('p, span, div')) {
                    const t = el.textContent.trim();
                    if (/^\\d+\\s*songs?$/i.test(t)) { countText = t; break; }
                }
            }
            if (texts.length && coverUrl) break;
            container = container.parentElement;
        }
        results.push({ id: m[1], texts, linkText: a.textContent.trim(), coverUrl, countText });
    });
    return results;
}
"""

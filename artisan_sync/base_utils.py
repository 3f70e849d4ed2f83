# artisan_sync/base_utils.py

import logging
import random
import re
import time
from datetime import datetime, timezone


logger = logging.getLogger("artisan_sync")

ANSI = {
    'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35', 'cyan': '36',
    'bright_red': '91', 'bright_green': '92', 'bright_yellow': '93',
}

PLACEHOLDER = re.compile(r'\{(\w+)\}')
MARKUP = re.compile(r'```[a-zA-Z]*\n?|\*\*|__')


class BaseUtils():

    # -----------------------
    # Console / text
    # -----------------------

    def color_print(self, text, color=None):
        code = ANSI.get((color or "").lower())
        logger.info(f"\033[{code}m{text}\033[0m" if code else str(text))

    def fill_template(self, template: str, **values) -> str:
        """
        Substitutes {name} only for the names given; any other brace pair
        stays in the output as written.
        """
        untouched = set()

        def sub(match):
            name = match.group(1)
            if name in values:
                return str(values[name])
            untouched.add(name)
            return match.group(0)

        out = PLACEHOLDER.sub(sub, template)
        if untouched:
            logger.debug(f"fill_template left placeholders in place: {', '.join(sorted(untouched))}")
        return out

    def strip_markup(self, text) -> str:
        # model replies occasionally arrive fenced or bolded
        if not text:
            return ""
        return MARKUP.sub('', str(text)).strip()

    # -----------------------
    # Ids / clocks
    # -----------------------

    def now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def make_local_id(self, prefix: str = "") -> str:
        """
        Time-based id with a random suffix, unique within a process session.
        """
        return f"{prefix}{int(time.time() * 1000)}{random.random():.12f}"

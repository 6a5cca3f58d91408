"""Filter agent variants.

Each module holds one :class:`~adaptive_crawler.interfaces.FilterAgent`
subclass; :mod:`adaptive_crawler.agent_loader` discovers them so that YAML
can reference an agent by class name:

```yaml
agents:
  - class: URLFilterAgent
    kwargs: {name: safe_urls, allowed_schemes: [https]}
```
"""

from .content_quality import ContentQualityAgent  # noqa: F401
from .email import EmailFilterAgent                # noqa: F401
from .text import TextFilterAgent                  # noqa: F401
from .url import URLFilterAgent                    # noqa: F401

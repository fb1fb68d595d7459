"""
Configuration and category tables for bookmark organization
"""

import os
import json
import re
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass

# Load .env file
from dotenv import load_dotenv
load_dotenv()  # This will load .env from current directory or parent directories

from bookmark_models import CategoryRule

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36'
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class OrganizerConfig:
    """Settings for link checking, duplicate detection and organization"""
    check_timeout: float = 5.0        # seconds before a check is abandoned
    batch_delay: float = 0.2          # pause between two link checks
    too_fast_threshold: float = 0.03  # fallback responses faster than this are suspect
    strict_mode: bool = False
    similarity_threshold: float = 0.8
    group_similarity_threshold: float = 0.5
    user_agent: str = DEFAULT_USER_AGENT
    rules_file: Optional[str] = None
    log_dir: str = "./logs"
    history_limit: int = 100
    undo_limit: int = 50
    show_progress: bool = True

    @property
    def request_timeout(self) -> float:
        """Per-request timeout, kept below the overall check timeout"""
        return max(self.check_timeout - 0.5, 0.1)

    @classmethod
    def from_env(cls) -> 'OrganizerConfig':
        """Create config from BOOKMARK_* environment variables"""
        defaults = cls()
        return cls(
            check_timeout=float(os.environ.get('BOOKMARK_CHECK_TIMEOUT') or defaults.check_timeout),
            batch_delay=float(os.environ.get('BOOKMARK_CHECK_DELAY') or defaults.batch_delay),
            strict_mode=_env_bool('BOOKMARK_STRICT_MODE', defaults.strict_mode),
            similarity_threshold=float(os.environ.get('BOOKMARK_SIMILARITY_THRESHOLD') or defaults.similarity_threshold),
            user_agent=os.environ.get('BOOKMARK_USER_AGENT') or defaults.user_agent,
            rules_file=os.environ.get('BOOKMARK_RULES_FILE'),  # This is optional
            log_dir=os.environ.get('BOOKMARK_LOG_DIR') or defaults.log_dir,
            show_progress=_env_bool('BOOKMARK_SHOW_PROGRESS', defaults.show_progress),
        )


def _rule(rule_id: str, folder: str, keywords: List[str], patterns: Optional[List[str]] = None) -> CategoryRule:
    return CategoryRule(id=rule_id, name=folder, keywords=keywords, target_folder=folder,
                        url_patterns=patterns or [])


# Ordered: the first matching rule wins
DEFAULT_CATEGORY_RULES: List[CategoryRule] = [
    _rule('search', 'Search Engines',
          ['bing.com', 'duckduckgo', 'search engine', 'baidu.com', 'yandex', 'ecosia', 'startpage', 'google search'],
          [r'^https?://(www\.)?google\.[a-z.]+/?(search|$)', r'^https?://(www\.)?bing\.com',
           r'^https?://(www\.)?duckduckgo\.com', r'^https?://(www\.)?baidu\.com', r'^https?://translate\.google\.']),
    _rule('email', 'Email',
          ['email', 'webmail', 'gmail', 'outlook.com', 'hotmail', 'protonmail', 'proton.me', 'fastmail', 'yahoo mail'],
          [r'^https?://mail\.google\.com', r'^https?://(www\.)?outlook\.(com|live\.com)',
           r'^https?://mail\.', r'^https?://(www\.)?proton\.me/mail']),
    _rule('social', 'Social Media',
          ['facebook', 'twitter', 'instagram', 'linkedin', 'tiktok', 'mastodon', 'reddit', 'pinterest',
           'telegram', 'discord', 'threads.net', 'bsky.app'],
          [r'.*\.(facebook|twitter|instagram|linkedin|tiktok|reddit|pinterest|discord)\.com', r'^https?://(www\.)?x\.com']),
    _rule('news', 'News',
          ['news', 'headlines', 'bbc.', 'cnn.com', 'reuters', 'nytimes', 'theguardian', 'apnews', 'bloomberg',
           'washingtonpost', 'wsj.com'],
          [r'.*\.(bbc|cnn|reuters|nytimes|theguardian|apnews)\.']),
    _rule('development', 'Development',
          ['github', 'gitlab', 'bitbucket', 'stackoverflow', 'stack overflow', 'developer', 'programming', 'npmjs',
           'pypi', 'python', 'javascript', 'typescript', 'rust-lang', 'golang', 'api reference', 'sdk', 'framework'],
          [r'^https?://(www\.)?github\.com', r'^https?://(www\.)?gitlab\.com', r'^https?://(www\.)?stackoverflow\.com',
           r'^https?://(www\.)?npmjs\.com', r'^https?://(www\.)?pypi\.org', r'^https?://developer\.mozilla\.org']),
    _rule('shopping', 'Shopping',
          ['amazon', 'ebay', 'etsy', 'aliexpress', 'shop', 'checkout', 'coupon', 'deals'],
          [r'.*\.(amazon|ebay|etsy|aliexpress|walmart)\.']),
    _rule('video', 'Video',
          ['youtube', 'youtu.be', 'vimeo', 'twitch', 'netflix', 'dailymotion', 'bilibili', 'video', 'movie', 'film',
           'streaming'],
          [r'.*\.(youtube|vimeo|twitch|netflix|bilibili)\.']),
    _rule('music', 'Music',
          ['music', 'spotify', 'soundcloud', 'bandcamp', 'podcast', 'last.fm', 'deezer', 'tidal'],
          [r'.*\.(spotify|soundcloud|bandcamp|deezer)\.']),
    _rule('work', 'Work',
          ['office.com', 'docs.google', 'notion.so', 'confluence', 'jira', 'trello', 'asana', 'slack.com', 'zoom.us',
           'teams.microsoft', 'calendar', 'meeting', 'evernote', 'onenote'],
          [r'.*\.(notion|atlassian|trello|asana|slack|zoom)\.', r'^https?://docs\.google\.com']),
    _rule('education', 'Education',
          ['course', 'tutorial', 'learn', 'coursera', 'udemy', 'edx.org', 'khanacademy', 'mooc', 'university',
           'college', 'lecture', 'homework'],
          [r'.*\.edu(/|$)', r'.*\.(coursera|udemy|edx|khanacademy)\.']),
    _rule('finance', 'Finance',
          ['bank', 'finance', 'stock', 'invest', 'trading', 'crypto', 'bitcoin', 'paypal', 'coinbase', 'insurance',
           'loan', 'mortgage'],
          [r'.*\.(paypal|coinbase|binance|robinhood)\.']),
    _rule('tools', 'Tools',
          ['tool', 'converter', 'translate', 'calculator', 'generator', 'formatter', 'json', 'regex', 'base64',
           'online-', 'speedtest'],
          [r'.*\.(converter|formatter|tools?)\.']),
    _rule('games', 'Games',
          ['game', 'gaming', 'steam', 'epicgames', 'itch.io', 'nintendo', 'playstation', 'xbox', 'chess.com',
           'lichess', 'twitch.tv/directory'],
          [r'^https?://store\.steampowered\.com', r'^https?://(www\.)?epicgames\.com']),
    _rule('reading', 'Reading',
          ['book', 'novel', 'kindle', 'goodreads', 'ebook', 'library', 'blog', 'medium.com', 'substack', 'magazine',
           'journal', 'essay'],
          [r'.*\.(goodreads|medium|substack)\.']),
    _rule('design', 'Design',
          ['design', 'figma', 'sketch', 'adobe', 'dribbble', 'behance', 'icon', 'font', 'palette', 'mockup',
           'wireframe', 'ui kit'],
          [r'.*\.(figma|dribbble|behance|adobe)\.']),
    _rule('ai', 'AI',
          ['chatgpt', 'openai', 'claude.ai', 'anthropic', 'gemini', 'huggingface', 'midjourney', 'perplexity',
           'deepseek', 'llm', 'machine learning', 'artificial intelligence', 'stable diffusion'],
          [r'.*\.(openai|huggingface|perplexity|midjourney)\.']),
    _rule('devops', 'DevOps',
          ['devops', 'docker', 'kubernetes', 'k8s', 'terraform', 'ansible', 'jenkins', 'nginx', 'aws.amazon',
           'azure', 'cloud.google', 'server', 'deploy', 'ci/cd', 'prometheus', 'grafana'],
          [r'.*\.(docker|kubernetes|terraform|jenkins)\.', r'^https?://console\.aws\.amazon\.com']),
    _rule('lifestyle', 'Lifestyle',
          ['recipe', 'cooking', 'food', 'travel', 'hotel', 'airbnb', 'booking.com', 'tripadvisor', 'maps',
           'fitness', 'health', 'real estate'],
          [r'.*\.(airbnb|booking|tripadvisor|expedia)\.']),
    _rule('security', 'Security',
          ['security', 'pentest', 'vulnerability', 'cve', 'exploit', 'malware', 'ctf', 'owasp', 'hackerone',
           'bugcrowd', 'haveibeenpwned', 'firewall'],
          [r'.*\.(owasp|hackerone|bugcrowd|haveibeenpwned)\.']),
    _rule('other', 'Other',
          ['misc', 'demo', 'example', 'sample', 'template']),
]

# Exact host -> folder, consulted for bookmarks the rules leave unclassified
DOMAIN_CATEGORY_MAP: Dict[str, str] = {
    'google.com': 'Search Engines',
    'bing.com': 'Search Engines',
    'duckduckgo.com': 'Search Engines',
    'mail.google.com': 'Email',
    'outlook.com': 'Email',
    'proton.me': 'Email',
    'x.com': 'Social Media',
    'twitter.com': 'Social Media',
    'facebook.com': 'Social Media',
    'instagram.com': 'Social Media',
    'linkedin.com': 'Social Media',
    'reddit.com': 'Social Media',
    'news.ycombinator.com': 'News',
    'bbc.com': 'News',
    'bbc.co.uk': 'News',
    'nytimes.com': 'News',
    'reuters.com': 'News',
    'github.com': 'Development',
    'gitlab.com': 'Development',
    'stackoverflow.com': 'Development',
    'developer.mozilla.org': 'Development',
    'dev.to': 'Development',
    'codepen.io': 'Development',
    'readthedocs.io': 'Development',
    'w3schools.com': 'Development',
    'caniuse.com': 'Development',
    'amazon.com': 'Shopping',
    'ebay.com': 'Shopping',
    'youtube.com': 'Video',
    'vimeo.com': 'Video',
    'spotify.com': 'Music',
    'wikipedia.org': 'Reading',
    'chatgpt.com': 'AI',
    'claude.ai': 'AI',
    'perplexity.ai': 'AI',
    'kubernetes.io': 'DevOps',
    'docker.com': 'DevOps',
}

# Title keywords tried after the domain map (and on fetched page text)
TITLE_KEYWORD_CATEGORIES: List[Tuple[str, List[str]]] = [
    ('Shopping', ['shop', 'buy', 'price', 'discount', 'coupon', 'deals']),
    ('News', ['news', 'breaking', 'headline', 'daily', 'report']),
    ('Social Media', ['social', 'community', 'forum', 'profile']),
    ('Tools', ['tool', 'converter', 'translator', 'calculator', 'generator', 'online']),
    ('Work', ['work', 'office', 'document', 'meeting', 'calendar', 'team']),
    ('Education', ['course', 'tutorial', 'learn', 'lesson', 'school', 'research']),
    ('Reading', ['book', 'novel', 'article', 'blog', 'essay', 'magazine']),
    ('Design', ['design', 'icon', 'font', 'template', 'inspiration', 'gallery']),
    ('Finance', ['stock', 'fund', 'finance', 'bank', 'invest', 'crypto']),
    ('Games', ['game', 'play', 'steam', 'walkthrough']),
    ('Lifestyle', ['recipe', 'food', 'travel', 'hotel', 'health']),
    ('Security', ['security', 'vulnerability', 'exploit', 'malware', 'privacy']),
]

# Title patterns that name a similarity group; the first match wins
GROUP_NAME_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'learn|tutorial|course', re.IGNORECASE), 'Tutorials'),
    (re.compile(r'code|programming|\bdev\b', re.IGNORECASE), 'Programming'),
    (re.compile(r'tool|utility', re.IGNORECASE), 'Tools & Resources'),
    (re.compile(r'\bdocs?\b|document|manual', re.IGNORECASE), 'Documentation'),
    (re.compile(r'guide|walkthrough', re.IGNORECASE), 'Guides'),
    (re.compile(r'resource|material', re.IGNORECASE), 'Resources'),
    (re.compile(r'blog|article', re.IGNORECASE), 'Articles'),
    (re.compile(r'video|movie|film', re.IGNORECASE), 'Videos'),
    (re.compile(r'music|audio|song', re.IGNORECASE), 'Music & Audio'),
    (re.compile(r'image|photo|picture', re.IGNORECASE), 'Images'),
    (re.compile(r'game|\bplay\b', re.IGNORECASE), 'Games'),
    (re.compile(r'shop|\bbuy\b|price', re.IGNORECASE), 'Shopping'),
    (re.compile(r'news|\binfo\b', re.IGNORECASE), 'News'),
    (re.compile(r'social|chat', re.IGNORECASE), 'Social'),
    (re.compile(r'\bwork\b|office|\bjob\b', re.IGNORECASE), 'Work'),
]

# Topic words two titles must share to earn the keyword part of the similarity score
SIMILARITY_KEYWORDS = ['tutorial', 'guide', 'learn', 'dev', 'tool', 'docs', 'resource', 'reference', 'course']

UNCATEGORIZED_GROUP = 'Uncategorized'


def load_rules(path: str) -> List[CategoryRule]:
    """Load an ordered rule list from a JSON file (a list, or {"rules": [...]})"""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('rules')
    if not isinstance(data, list):
        raise ValueError(f"Rule file {path} must contain a list of rules")
    return [CategoryRule.from_dict(item) for item in data]


def save_rules(path: str, rules: List[CategoryRule]) -> str:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([rule.to_dict() for rule in rules], f, indent=2, ensure_ascii=False)
    return path


def get_rules(config: Optional[OrganizerConfig] = None) -> List[CategoryRule]:
    """Get the category rules, preferring a rule file over the built-in table"""
    if config and config.rules_file and not os.path.exists(config.rules_file):
        raise FileNotFoundError(f"Rule file not found: {config.rules_file}")

    # Check for rule files in order of preference
    rule_files = [
        config.rules_file if config else None,  # Environment variable override
        './category_rules.json',                # Local project config
        './rules.json',                         # Alternative local config
    ]

    for rules_path in rule_files:
        if rules_path and os.path.exists(rules_path):
            print(f"📋 Using category rules: {rules_path}")
            return load_rules(rules_path)

    return list(DEFAULT_CATEGORY_RULES)

"""
Text Analyzer

Splits English and Russian text into words, drops stopwords and stems the
rest with the Snowball stemmers from NLTK. Used by the extractor (index
side) and the search engine (query side), so both agree on stems.
"""

import logging
import re
from typing import Iterator

from nltk.stem.snowball import SnowballStemmer

logger = logging.getLogger(__name__)

MAX_WORD_LENGTH = 20

_NON_LETTERS_RE = re.compile(r"[^a-zа-яё]+", re.IGNORECASE)

STOPWORDS = frozenset(
    """
    a b c d e f g h i j k l m n o p q r s t u v w x y z
    about above abroad according accordingly across actually adj after afterwards again against ago
    ahead ain all allow allows almost alone along alongside already also although always am amid
    amidst among amongst an and another any anybody anyhow anyone anything anyway anyways anywhere
    apart appear appreciate appropriate are aren around as aside ask asking associated at available
    away awfully back backward backwards be became because become becomes becoming been before
    beforehand begin behind being believe below beside besides best better between beyond both brief
    but by came can cannot cant caption cause causes certain certainly changes clearly co com come
    comes concerning consequently consider considering contain containing contains corresponding
    could couldn course currently dare daren definitely described despite did didn different directly
    do does doesn doing don done down downwards during each edu eg eight eighty either else elsewhere
    end ending enough entirely especially et etc even ever evermore every everybody everyone
    everything everywhere ex exactly example except fairly far farther few fewer fifth first five
    followed following follows for forever former formerly forth forward found four from further
    furthermore get gets getting given gives go goes going gone got gotten greetings had hadn half
    happens hardly has hasn have haven having he hello help hence her here hereafter hereby herein
    hereupon hers herself hi him himself his hither hopefully how howbeit however hundred ie if
    ignored immediate in inasmuch inc indeed indicate indicated indicates inner inside insofar
    instead into inward is isn it its itself just keep keeps kept know known knows last lately later
    latter latterly least less lest let like liked likely likewise little ll look looking looks low
    lower ltd made mainly make makes many may maybe mayn me mean meantime meanwhile merely might
    mightn mine minus miss more moreover most mostly mr mrs much must mustn my myself name namely
    nd near nearly necessary need needn needs neither never neverf neverless nevertheless new next
    nine ninety no nobody non none nonetheless noone nor normally not nothing notwithstanding
    novel now nowhere obviously of off often oh ok okay old on once one ones only onto opposite or
    other others otherwise ought oughtn our ours ourselves out outside over overall own particular
    particularly past per perhaps placed please plus possible presumably probably provided provides
    que quite qv rather rd re really reasonably recent recently regarding regardless regards
    relatively respectively right round said same saw say saying says second secondly see seeing seem
    seemed seeming seems seen self selves sensible sent serious seriously seven several shall shan
    she should shouldn since six so some somebody someday somehow someone something sometime
    sometimes somewhat somewhere soon sorry specified specify specifying still sub such sup sure take
    taken taking tell tends th than thank thanks thanx that thats the their theirs them themselves
    then thence there thereafter thereby therefore therein theres thereupon these they thing things
    think third thirty this thorough thoroughly those though three through throughout thru thus till
    to together too took toward towards tried tries truly try trying twice two un under underneath
    undoing unfortunately unless unlike unlikely until unto up upon upwards us use used useful uses
    using usually value various versus very via viz vs want wants was wasn way we welcome well went
    were weren what whatever when whence whenever where whereafter whereas whereby wherein whereupon
    wherever whether which whichever while whilst whither who whoever whole whom whomever whose why
    will willing wish with within without won wonder would wouldn yes yet you your yours yourself
    yourselves zero
    а без более бы был была были было быть в вам вас весь вдоль ведь вместо вне вниз внизу внутри
    во вокруг вот все всегда всего всех вы где да давай давать даже для до достаточно его ее если
    есть ещё еще её же за здесь и из или им иметь их к как когда кроме кто ли либо мне может мои
    мой мы на навсегда над надо наш не него нет неё ни них но ну о об однако он она они оно от
    отчего очень по под после потому почти при про с снова со так также такие такой там те тем то
    того тоже той только том тут ты у уже хотя чего чей чем что чтобы чья чьё эта эти это я
    """.split()
)


class Stemmer:
    """English/Russian tokenizer and stemmer."""

    def __init__(self):
        self._en = SnowballStemmer("english")
        self._ru = SnowballStemmer("russian")

    def tokenize_and_stem(self, text: str) -> Iterator[str]:
        """Yield stems of the words of `text`, skipping stopwords."""
        if not text:
            return
        for word in _NON_LETTERS_RE.split(text):
            stem = self.stem(word)
            if stem:
                yield stem

    def stem(self, word: str) -> str | None:
        if not word:
            return None
        word = word.lower()
        if word in STOPWORDS or len(word) > MAX_WORD_LENGTH:
            return None
        stemmer = self._en if word[0] <= "z" else self._ru
        return stemmer.stem(word)


stemmer = Stemmer()

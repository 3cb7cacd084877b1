"""
受検生の回答分析

- 回答の深さ（surface / moderate / deep / profound）
- 含まれる要素・感情・困難・解決策・学びのラベル
- 会話の連続性を保つためのキーワード抽出
- 深掘り戦略用のキーワード分類
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field

SPECIFIC_WORDS = re.compile(r"具体的|例えば|実際|詳しく|なぜなら")
EMOTION_WORDS = re.compile(r"嬉しい|楽しい|困った|大変|感動")

ELEMENT_PATTERNS = {
    "きっかけ": re.compile(r"きっかけ|始め|最初"),
    "困難": re.compile(r"困っ|大変|難し|問題|課題"),
    "解決策": re.compile(r"解決|工夫|方法|やり方"),
    "学び": re.compile(r"学ん|気づ|分か|理解"),
    "協働": re.compile(r"友達|先生|家族|みんな|一緒"),
    "継続意欲": re.compile(r"続け|もっと|また|次"),
}

EMOTION_PATTERNS = {
    "joy": re.compile(r"嬉しい|楽しい|面白い|わくわく"),
    "difficulty": re.compile(r"困っ|大変|つらい|悩ん"),
    "surprise": re.compile(r"驚い|びっくり|意外"),
    "satisfaction": re.compile(r"満足|達成|成功|うまく"),
}

DIFFICULTY_PATTERNS = {
    "意見対立": re.compile(r"意見|違い|対立|もめ"),
    "技術的困難": re.compile(r"技術|技能|うまく|できな"),
    "時間管理": re.compile(r"時間|忙し|間に合わ"),
    "資金面": re.compile(r"お金|費用|高い"),
}

SOLUTION_PATTERNS = {
    "反復練習": re.compile(r"練習|繰り返|何度も"),
    "情報収集": re.compile(r"調べ|研究|情報"),
    "他者サポート": re.compile(r"相談|聞い|教え"),
    "方法論改善": re.compile(r"工夫|方法|やり方"),
}

LEARNING_PATTERNS = {
    "価値観形成": re.compile(r"大切|重要|必要"),
    "能力向上": re.compile(r"できる|成長|上達"),
    "興味拡大": re.compile(r"楽し|面白|好き"),
    "社会性向上": re.compile(r"友達|仲間|協力"),
}

# 連続性キーワード（この順に並べて重複除去）
CONTINUITY_PATTERNS = (
    re.compile(r"メダカ|ダンス|環境委員会|pH|水質|振付|チーム|観察|記録|測定|練習|発表|文化祭|委員会|植物|育成"),
    re.compile(r"困った|大変|難しかった|うまくいかな|失敗|問題|課題|苦労|死んで|だめ|悪く"),
    re.compile(r"先生|友達|仲間|みんな|一緒|母|父|チームメンバー|クラスメート"),
    re.compile(r"嬉しかった|楽しかった|悲しかった|驚いた|発見|気づいた|学んだ|感じた"),
    re.compile(r"使って|試験紙|道具|器具|測定|手順|方法|やり方|工夫|改善|対処"),
)

# 深掘り戦略用のキーワード分類（グループ順に抽出して重複除去）
PRIMARY_PATTERNS = (
    re.compile(r"環境委員会|生徒会|委員長|部活動|クラブ活動"),
    re.compile(r"メダカ|金魚|熱帯魚|植物|野菜|花"),
    re.compile(r"ダンス|音楽|演劇|合唱|楽器|ピアノ|バイオリン"),
    re.compile(r"プログラミング|ロボット|アプリ|ゲーム|電子工作"),
    re.compile(r"サッカー|野球|バスケ|テニス|水泳|陸上"),
    re.compile(r"ボランティア|地域活動|環境問題|社会貢献"),
)
SECONDARY_PATTERNS = (
    re.compile(r"観察|記録|測定|実験|調査|研究|分析|比較"),
    re.compile(r"練習|訓練|勉強|学習|習得|上達|向上"),
    re.compile(r"作成|制作|開発|設計|企画|準備"),
    re.compile(r"発表|披露|公演|展示|説明|紹介"),
)
KEYWORD_EMOTION_PATTERNS = (
    re.compile(r"楽しい|面白い|嬉しい|わくわく|ドキドキ"),
    re.compile(r"大変|困った|悩んだ|不安|心配"),
    re.compile(r"感動|感激|驚いた|びっくり|すごい"),
    re.compile(r"悲しい|残念|がっかり|つらい"),
)
TIME_FRAME_PATTERNS = (
    re.compile(r"小学[1-6１-６]年生?|[1-6１-６]年生?の?時"),
    re.compile(r"[1-9]年間|毎日|毎週|週[1-7]回|月[1-9]回"),
    re.compile(r"最初|初めて|はじめは|当初"),
    re.compile(r"今|現在|最近|今度|これから"),
)
KEYWORD_DIFFICULTY_PATTERNS = (
    re.compile(r"困難|大変|難しい|困った|苦労"),
    re.compile(r"失敗|うまくいかな|だめ|ミス|間違い"),
    re.compile(r"問題|課題|トラブル|悩み"),
    re.compile(r"壁|限界|挫折|諦め"),
)
COLLABORATOR_PATTERNS = (
    re.compile(r"友達|友人|仲間|チーム|グループ|メンバー"),
    re.compile(r"先生|指導者|コーチ|先輩|後輩"),
    re.compile(r"家族|両親|父|母|兄弟|姉妹"),
    re.compile(r"一緒|協力|手伝い|サポート|支援"),
)


@dataclass
class ResponseAnalysis:
    depth: str = "surface"
    elements: list[str] = field(default_factory=list)
    emotions: list[str] = field(default_factory=list)
    difficulties: list[str] = field(default_factory=list)
    solutions: list[str] = field(default_factory=list)
    learnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class KeywordAnalysis:
    primary: list[str] = field(default_factory=list)
    secondary: list[str] = field(default_factory=list)
    emotions: list[str] = field(default_factory=list)
    time_frames: list[str] = field(default_factory=list)
    difficulties: list[str] = field(default_factory=list)
    collaborators: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _labels(text: str, patterns: dict[str, re.Pattern]) -> list[str]:
    return [label for label, pattern in patterns.items() if pattern.search(text)]


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def assess_depth(text: str) -> str:
    length = len(text)
    specific = len(SPECIFIC_WORDS.findall(text))
    emotion = len(EMOTION_WORDS.findall(text))
    if length > 100 and specific >= 2 and emotion >= 1:
        return "profound"
    if length > 60 and (specific >= 1 or emotion >= 1):
        return "deep"
    if length > 30:
        return "moderate"
    return "surface"


def analyze_response(text: str) -> ResponseAnalysis:
    text = text or ""
    return ResponseAnalysis(
        depth=assess_depth(text),
        elements=_labels(text, ELEMENT_PATTERNS),
        emotions=_labels(text, EMOTION_PATTERNS),
        difficulties=_labels(text, DIFFICULTY_PATTERNS),
        solutions=_labels(text, SOLUTION_PATTERNS),
        learnings=_labels(text, LEARNING_PATTERNS),
    )


def _find_all(text: str, patterns: tuple[re.Pattern, ...]) -> list[str]:
    found: list[str] = []
    for pattern in patterns:
        found.extend(pattern.findall(text or ""))
    return _unique(found)


def extract_continuity_keywords(text: str) -> list[str]:
    return _find_all(text, CONTINUITY_PATTERNS)


def analyze_keywords(text: str) -> KeywordAnalysis:
    return KeywordAnalysis(
        primary=_find_all(text, PRIMARY_PATTERNS),
        secondary=_find_all(text, SECONDARY_PATTERNS),
        emotions=_find_all(text, KEYWORD_EMOTION_PATTERNS),
        time_frames=_find_all(text, TIME_FRAME_PATTERNS),
        difficulties=_find_all(text, KEYWORD_DIFFICULTY_PATTERNS),
        collaborators=_find_all(text, COLLABORATOR_PATTERNS),
    )

"""Translation of cached artifacts from their base language.

Artifacts are translated field by field through one batched call per
artifact, so the structure (choice order, slide layout, code, URLs) never
passes through the model and cannot be damaged by it.
"""
import json
import logging
import string

from skillloop.errors import GenerationFailed
from skillloop.generation import language_name, lenient_decode
from skillloop.providers import TextProvider

logger = logging.getLogger(__name__)


def _is_letter_key(item: dict) -> bool:
    answer = str(item.get("answer", "")).strip().lower()
    choices = item.get("choices") or []
    if len(answer) != 1 or answer not in string.ascii_lowercase:
        return False
    keys = [c.strip().lower() for c in choices]
    return string.ascii_lowercase.index(answer) < len(choices) and answer not in keys


class Translator:
    def __init__(self, provider: TextProvider):
        self.provider = provider

    def translate_texts(self, texts: list[str], from_lang: str, to_lang: str,
                        context: str | None = None) -> list[str]:
        """Translate a list of strings in one call, preserving order and length."""
        if from_lang == to_lang or not texts:
            return list(texts)
        source = "Auto-detect the source language for each text" if from_lang == "auto" \
            else f"From {language_name(from_lang)}"
        guide = f"\nCONTEXT and STYLE GUIDE:\n{context}\n" if context else ""
        prompt = f"""You are a professional translator.{guide}
{source}, translate the following texts to {language_name(to_lang)}.
Return a JSON array with the translated strings in the same order.
Keep code, API names and URLs unchanged. Translate naturally.

INPUT:
{json.dumps(texts, ensure_ascii=False)}

OUTPUT: Return ONLY the JSON array of translated strings."""
        logger.debug("Translating %d text(s) %s -> %s", len(texts), from_lang, to_lang)
        max_tokens = max(2000, sum(len(t) for t in texts) // 2)
        parsed = lenient_decode(self.provider.generate(prompt, max_tokens))
        if isinstance(parsed, dict):
            parsed = list(parsed.values())
        if not isinstance(parsed, list) or len(parsed) != len(texts):
            raise GenerationFailed(
                f"Translation returned {len(parsed) if isinstance(parsed, list) else 'no'} items for {len(texts)}"
            )
        return [str(t) for t in parsed]

    def translate_text(self, text: str, from_lang: str, to_lang: str) -> str:
        if from_lang == to_lang or not text:
            return text
        return self.translate_texts([text], from_lang, to_lang)[0]

    def translate_steps(self, artifact: dict, from_lang: str, to_lang: str) -> dict:
        steps = self.translate_texts(artifact["steps"], from_lang, to_lang, "Learning steps for a daily mission.")
        return {**artifact, "steps": steps}

    def translate_quiz(self, quiz: list[dict], from_lang: str, to_lang: str) -> list[dict]:
        """Translate questions, choices and answers.

        The base-language answers stay accepted through alternativeAnswers so
        a learner answering with the original term is still graded correct.
        A bare letter key ("b") names a choice by position and is kept as is.
        """
        texts = []
        for item in quiz:
            texts.append(item["q"])
            if not _is_letter_key(item):
                texts.append(item["answer"])
            texts.extend(item.get("choices") or [])
            texts.extend(item.get("alternativeAnswers") or [])
        translated = iter(self.translate_texts(
            texts, from_lang, to_lang,
            "Quiz items. Translate answers exactly as the matching choice is translated.",
        ))
        result = []
        for item in quiz:
            letter_key = _is_letter_key(item)
            new = {"q": next(translated), "type": item["type"]}
            new["answer"] = item["answer"] if letter_key else next(translated)
            if item.get("choices"):
                new["choices"] = [next(translated) for _ in item["choices"]]
                keys = [c.strip().lower() for c in item["choices"]]
                if item["answer"].strip().lower() in keys:
                    new["answer"] = new["choices"][keys.index(item["answer"].strip().lower())]
            alternatives = [next(translated) for _ in item.get("alternativeAnswers") or []]
            if not letter_key:
                alternatives.append(item["answer"])
            alternatives += item.get("alternativeAnswers") or []
            new["alternativeAnswers"] = [a for a in dict.fromkeys(alternatives) if a and a != new["answer"]]
            result.append(new)
        return result

    def translate_article(self, article: dict, from_lang: str, to_lang: str) -> dict:
        if from_lang == to_lang:
            return article
        texts = [article["title"], article["content"], *article.get("sections", [])]
        translated = self.translate_texts(
            texts, from_lang, to_lang,
            "An educational markdown article. Preserve markdown; do not translate code blocks.",
        )
        return {
            **article,
            "title": translated[0],
            "content": translated[1],
            "sections": translated[2:],
        }

    def translate_slides(self, slides: list[dict], from_lang: str, to_lang: str) -> list[dict]:
        if from_lang == to_lang:
            return slides
        fields = ("title", "speakerNotes", "keyTakeaway")
        texts = []
        for slide in slides:
            texts.extend(slide[f] for f in fields if slide.get(f))
            texts.extend(slide.get("content", []))
        translated = iter(self.translate_texts(
            texts, from_lang, to_lang,
            "Presentation slides. Keep technical terms that are usually left untranslated.",
        ))
        result = []
        for slide in slides:
            new = dict(slide)
            for f in fields:
                if slide.get(f):
                    new[f] = next(translated)
            new["content"] = [next(translated) for _ in slide.get("content", [])]
            result.append(new)
        return result

    def translate_resources(self, resources: list[dict], from_lang: str, to_lang: str) -> list[dict]:
        """Translate link titles and descriptions; URLs stay as found."""
        if from_lang == to_lang:
            return resources
        texts = []
        for res in resources:
            texts.append(res.get("title", ""))
            texts.append(res.get("description", ""))
        translated = iter(self.translate_texts(texts, from_lang, to_lang, "Titles of learning resources."))
        result = []
        for res in resources:
            new = dict(res)
            new["title"] = next(translated)
            description = next(translated)
            if res.get("description"):
                new["description"] = description
            result.append(new)
        return result

"""Chat-completions client that generates word metadata and phrases."""

import json
import re
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

import config
from hzcli.errors import (
    ArgumentError,
    AuthRequiredError,
    GenerationError,
    MalformedResponseError,
)
from hzcli.logger import get_logger
from hzcli.models import GeneratedPhrase, WordData

WORD_DATA_PROMPT = """Provide the definition and pinyin for the word "{word}" in Chinese Simplified. Format your response as JSON with keys
"translations" (list of literal English translations of the word, nothing else in each entry),
"note" (if the literal translation does not fully capture the meaning, a brief explanation of the word's usage or context, otherwise an empty string),
"pinyin" (the pinyin transcription of the word with the correct tone marks),
"tone" (1, 2, 3, 4 or "-" for neutral tone),
"sentence" (a brief example sentence that uses the word),
"sentencePinyin" (the pinyin transcription of the example sentence with the correct tone marks),
"sentenceTranslation" (the English translation of the example sentence),
"sentenceDefinition" (if the translation is not literal, explain the meaning, otherwise an empty string).
Just return the JSON string without any prefix or postfix text.

Keep the note as brief as possible, e.g. instead of
"Used as a third-person singular feminine pronoun in Chinese" say
"third-person singular feminine pronoun"."""

PHRASE_PROMPT = """Generate a phrase in Chinese Simplified using the following words and characters: {words}.{focus}{about}
If the provided words are not sufficient to form a meaningful phrase, "phrase" MUST be an empty string.{previous}
Output must be a JSON string with these keys:
"phrase" (the generated Chinese characters phrase, or an empty string),
"pinyin" (the pinyin transcription of the phrase with correct tone marks, spaces only between words),
"translation" (the English translation of the phrase),
"meaningful" (true or false; simple phrases count as meaningful),
"note" (any additional note, such as how the concepts translate if the translation is not literal, or an empty string).
Just return the JSON string without any prefix or postfix text."""


class ContentGenerator(Protocol):
    """The two generator operations the store depends on."""

    async def fetch_word_data(self, word: str) -> WordData: ...

    async def generate_phrase(
        self,
        words: list[str],
        previous_phrases: list[str],
        focus_word: Optional[str] = None,
        about: Optional[str] = None,
    ) -> GeneratedPhrase: ...


FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def extract_json_from_response(message: str) -> dict:
    """
    Decode the first JSON object in an assistant message.

    Chat models are asked for bare JSON but sometimes wrap it in a
    markdown fence or add a sentence around it.

    Args:
        message: Content of the first choice's message

    Returns:
        Parsed JSON dictionary

    Raises:
        MalformedResponseError: If the message holds no JSON object
    """
    text = FENCE_RE.sub("", message.strip())
    decoder = json.JSONDecoder()

    start = text.find("{")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(data, dict):
            return data
        start = text.find("{", start + 1)

    raise MalformedResponseError(f"No JSON object in LLM reply: {message[:500]}")


def parse_word_data(data: dict) -> WordData:
    """Validate a word payload, trimming each translation."""
    try:
        word_data = WordData.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected word data from LLM: {e}") from e
    word_data.translations = [t.strip() for t in word_data.translations if t.strip()]
    return word_data


def parse_generated_phrase(data: dict) -> GeneratedPhrase:
    """
    Validate a phrase payload.

    A phrase flagged as not meaningful is blanked out so that callers only
    have to check for an empty phrase.
    """
    try:
        phrase = GeneratedPhrase.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected phrase data from LLM: {e}") from e

    if not phrase.meaningful or not phrase.phrase.strip():
        return GeneratedPhrase(meaningful=False)
    return phrase


def build_phrase_prompt(
    words: list[str],
    previous_phrases: list[str],
    focus_word: Optional[str] = None,
    about: Optional[str] = None,
) -> str:
    focus = f' Include the word "{focus_word}".' if focus_word else ""
    about_line = f"\nThe phrase must also be about: {about}" if about else ""
    previous = ""
    if previous_phrases:
        previous = (
            "\nIf the phrase matches the concepts of one of these previously generated phrases: "
            f"{', '.join(previous_phrases)}, \"phrase\" MUST be an empty string."
        )
    return PHRASE_PROMPT.format(
        words=", ".join(words), focus=focus, about=about_line, previous=previous
    )


class LLMClient:
    """Content generator backed by an OpenAI-compatible chat-completions API."""

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = config.LLM_API_URL,
        model: str = config.LLM_MODEL,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer token for the API
            client: Optional shared async HTTP client. A short-lived one is
                created per request if omitted.
            api_url: Chat-completions endpoint
            model: Model name
        """
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self._client = client
        self.logger = get_logger()

    def _check_api_key(self) -> None:
        if not self.api_key:
            raise AuthRequiredError(
                "API key is required for LLM operations. "
                f"Run 'hzcli llm set-key <key>' or set {config.LLM_API_KEY_ENV}."
            )

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            self.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=config.LLM_TIMEOUT,
        )

    async def complete(self, prompt: str) -> dict:
        """
        Send a single-message chat completion and parse the JSON reply.

        Args:
            prompt: User prompt

        Returns:
            Parsed JSON dictionary from the model's reply

        Raises:
            AuthRequiredError: If no API key is configured or it was rejected
            GenerationError: If the request fails
            MalformedResponseError: If the reply cannot be parsed
        """
        self._check_api_key()

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": config.LLM_MAX_TOKENS,
            "temperature": config.LLM_TEMPERATURE,
        }

        self.logger.debug(f"LLM request to {self.api_url} ({self.model})")
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except httpx.TimeoutException as e:
            raise GenerationError(f"LLM request timed out after {config.LLM_TIMEOUT}s") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"LLM request failed: {e}") from e

        if response.status_code == 401:
            raise AuthRequiredError("LLM API rejected the configured API key.")
        if response.is_error:
            raise GenerationError(
                f"LLM API error {response.status_code}: {response.text[:500]}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(f"Unexpected LLM response envelope: {e}") from e

        return extract_json_from_response(content or "")

    async def fetch_word_data(self, word: str) -> WordData:
        """
        Generate pinyin, tone, translations and an example sentence for a word.

        Raises:
            AuthRequiredError: If no API key is configured
            ArgumentError: If the word is empty
            MalformedResponseError: If the reply cannot be parsed
        """
        self._check_api_key()
        if not word or not word.strip():
            raise ArgumentError("Word is required to fetch data.")

        data = await self.complete(WORD_DATA_PROMPT.format(word=word))
        return parse_word_data(data)

    async def generate_phrase(
        self,
        words: list[str],
        previous_phrases: list[str],
        focus_word: Optional[str] = None,
        about: Optional[str] = None,
    ) -> GeneratedPhrase:
        """
        Generate a phrase from deck words.

        An empty phrase in the result means no meaningful or novel phrase
        could be formed; it is not an error at this level.
        """
        self._check_api_key()
        if not words:
            raise ArgumentError("No words provided for phrase generation.")

        prompt = build_phrase_prompt(words, previous_phrases, focus_word, about)
        data = await self.complete(prompt)
        return parse_generated_phrase(data)

"""
OpenAI Product Enrichment Service

Generates Kaspi.kz listing fields (RU/KZ titles and descriptions,
category, attributes) from whatever the merchant typed or scanned.
Calls the Chat Completions API over httpx and falls back to a
template-based enrichment when the key is missing or the call fails.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.config.settings import Settings, get_settings
from app.domain.product import ProductCategory, ProductEnrichment, coerce_category
from app.infrastructure.exceptions import AIServiceError


logger = logging.getLogger(__name__)


OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

FALLBACK_CONFIDENCE = 0.3

SYSTEM_PROMPT = """Ты эксперт по товарам для маркетплейсов. Анализируй данные о товаре и создавай структурированную информацию для карточки товара на Kaspi.kz.

Верни ТОЛЬКО валидный JSON в следующем формате:
{
  "brand": "Название бренда",
  "type": "Тип товара",
  "model": "Модель",
  "keySpec": "Ключевые характеристики",
  "category": "electronics|clothing|cosmetics|home|sports|other",
  "titleRu": "Название на русском",
  "titleKz": "Название на казахском",
  "descriptionRu": "Описание на русском",
  "descriptionKz": "Описание на казахском",
  "attributes": {"attribute": "value"},
  "confidence": 0.95
}

Правила:
- electronics: электроника, техника, гаджеты
- clothing: одежда, обувь, аксессуары (обувь тоже clothing)
- cosmetics: косметика, парфюмерия, уход
- home: товары для дома, мебель, декор
- sports: спортивные товары, фитнес
- other: все остальное
- Названия краткие и информативные, описания структурированы маркерами
- confidence от 0 до 1
- Если данных мало, используй разумные предположения"""


CATEGORY_ATTRIBUTES: Dict[ProductCategory, Dict[str, str]] = {
    ProductCategory.ELECTRONICS: {
        "power": "220В, 50-60Гц",
        "warranty": "12 месяцев",
        "cert": "EAC, ТР ТС",
    },
    ProductCategory.CLOTHING: {
        "material": "Хлопок 100%",
        "care": "Машинная стирка",
        "season": "Всесезонный",
    },
    ProductCategory.COSMETICS: {
        "volume": "50мл",
        "shelfLife": "36 месяцев",
        "cert": "ТР ТС",
    },
}


def build_prompt(product: Dict[str, Any], ocr_text: Optional[str] = None) -> str:
    """User message listing the known product data."""
    labels = {
        "brand": "Бренд",
        "type": "Тип",
        "model": "Модель",
        "key_spec": "Характеристики",
        "category": "Категория",
        "gtin": "GTIN",
    }
    parts = ["Данные о товаре:"]
    for key, label in labels.items():
        if product.get(key):
            parts.append(f"{label}: {product[key]}")
    if ocr_text:
        parts.append("\nТекст с изображения:")
        parts.append(ocr_text)
    return "\n".join(parts)


def fallback_enrichment(product: Dict[str, Any]) -> ProductEnrichment:
    """Template enrichment used when the AI is unavailable."""
    brand = product.get("brand") or "Неизвестный бренд"
    type_ = product.get("type") or "Товар"
    model = product.get("model") or "Модель"
    key_spec = product.get("key_spec") or ""
    category = coerce_category(product.get("category"))

    title = " ".join(part for part in (type_, brand, model, key_spec) if part).strip()

    description_ru = (
        "• Высокое качество и надежность\n"
        "• Современный дизайн\n"
        "• Удобство в использовании\n\n"
        "Характеристики:\n"
        f"• Бренд: {brand}\n"
        f"• Модель: {model}\n"
        f"• Тип: {type_}"
    )
    description_kz = (
        "• Жоғары сапа және сенімділік\n"
        "• Заманауи дизайн\n"
        "• Пайдалануға ыңғайлы\n\n"
        "Сипаттамалар:\n"
        f"• Бренд: {brand}\n"
        f"• Модель: {model}\n"
        f"• Түрі: {type_}"
    )
    if key_spec:
        description_ru += f"\n• Особенности: {key_spec}"
        description_kz += f"\n• Ерекшеліктері: {key_spec}"

    attributes = {"brand": brand, "model": model, "type": type_}
    attributes.update(CATEGORY_ATTRIBUTES.get(category, {}))

    return ProductEnrichment(
        brand=brand,
        type=type_,
        model=model,
        key_spec=key_spec or None,
        category=category,
        title_ru=title,
        title_kz=title,
        description_ru=description_ru,
        description_kz=description_kz,
        attributes=attributes,
        confidence=FALLBACK_CONFIDENCE,
    )


def parse_completion(content: str) -> ProductEnrichment:
    """
    Parse the model's JSON answer.

    Raises:
        AIServiceError: content is not a JSON object matching the schema
    """
    try:
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("completion is not a JSON object")
        attributes = data.get("attributes")
        data["attributes"] = (
            {str(key): str(value) for key, value in attributes.items()}
            if isinstance(attributes, dict)
            else {}
        )
        return ProductEnrichment.model_validate(data)
    except (ValueError, PydanticValidationError) as e:
        raise AIServiceError(
            "Could not parse enrichment response",
            operation="parse_completion",
            original_error=e,
        )


class ProductEnrichmentService:
    """OpenAI-backed product enrichment with a template fallback."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._api_key = settings.openai_api_key
        self._model = settings.openai_model
        self._timeout = settings.openai_timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def enrich(
        self,
        product: Dict[str, Any],
        ocr_text: Optional[str] = None,
    ) -> ProductEnrichment:
        """
        Enrich product data; never raises for AI problems.

        Args:
            product: Known fields (brand, type, model, key_spec, category, gtin)
            ocr_text: Text read from the product photo, if any
        """
        if not self.is_configured:
            logger.warning("OPENAI_API_KEY not configured, using fallback enrichment")
            return fallback_enrichment(product)

        try:
            content = await self._complete(build_prompt(product, ocr_text))
            enrichment = parse_completion(content)
            logger.info(
                f"AI enrichment completed: category={enrichment.category.value}, "
                f"confidence={enrichment.confidence}"
            )
            return enrichment
        except AIServiceError as e:
            logger.error(f"AI enrichment failed, using fallback: {e.message}")
            return fallback_enrichment(product)

    async def _complete(self, prompt: str) -> str:
        """Single chat completion returning the message content."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    OPENAI_CHAT_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self._model,
                        "messages": [
                            {"role": "system", "content": SYSTEM_PROMPT},
                            {"role": "user", "content": prompt},
                        ],
                        "temperature": 0.3,
                        "max_tokens": 1000,
                        "response_format": {"type": "json_object"},
                    },
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"OpenAI API error: {e.response.status_code} - {e.response.text}")
            raise AIServiceError(
                f"OpenAI API error: {e.response.status_code}",
                model=self._model,
                operation="chat_completion",
                original_error=e,
            )
        except httpx.HTTPError as e:
            raise AIServiceError(
                "OpenAI request failed",
                model=self._model,
                operation="chat_completion",
                original_error=e,
            )

        content = (data.get("choices") or [{}])[0].get("message", {}).get("content")
        if not content:
            raise AIServiceError("No content in OpenAI response", model=self._model)
        return content


_enrichment_service_instance: Optional[ProductEnrichmentService] = None


def get_enrichment_service() -> ProductEnrichmentService:
    """Get or create the enrichment service singleton."""
    global _enrichment_service_instance

    if _enrichment_service_instance is None:
        _enrichment_service_instance = ProductEnrichmentService()

    return _enrichment_service_instance

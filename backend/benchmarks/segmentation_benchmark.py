#!/usr/bin/env python3
"""
Benchmark script for tokenizer resolution and segmentation performance.
"""
import sys
import os
import time
import asyncio
import logging
import statistics
import random

# Add the parent directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tokenlens.models.tokens import TokenizeOptions
from tokenlens.services.cache import TokenizerCache
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

WORDS = [
    "token", "segment", "chunk", "encoding", "vocabulary", "merge", "byte",
    "model", "cache", "latency", "unicode", "你好", "naïve", "emoji 🚀", "<|im_start|>",
]


def generate_text(length):
    """Generate random text of roughly the given length."""
    parts = []
    size = 0
    while size < length:
        word = random.choice(WORDS)
        sep = random.choice([" ", " ", " ", "\n", ", "])
        parts.append(word + sep)
        size += len(word) + len(sep)
    return "".join(parts)[:length]


async def run_resolution_benchmark(cache, model, iterations=10):
    """Time the first (uncached) and subsequent (cached) resolutions."""
    start_time = time.time()
    await cache.get_or_create(model)
    cold = time.time() - start_time
    logger.info(f"Cold resolution of {model} took {cold:.4f}s")

    warm_times = []
    for i in range(iterations):
        start_time = time.time()
        await cache.get_or_create(model)
        warm_times.append(time.time() - start_time)

    return cold, warm_times


def run_segmentation_benchmark(tokenizer, lengths, iterations=5):
    """Time direct, chunked and fast-mode tokenization for each input length."""
    results = {}
    for length in lengths:
        text = generate_text(length)
        full_times = []
        fast_times = []
        for i in range(iterations):
            start_time = time.time()
            # A large max_tokens keeps segments on for the timing
            result = tokenizer.tokenize(text, TokenizeOptions(max_tokens=10 ** 9))
            full_times.append(time.time() - start_time)

            start_time = time.time()
            tokenizer.tokenize(text, TokenizeOptions(fast_mode=True))
            fast_times.append(time.time() - start_time)

        assert "".join(s.text for s in result.segments) == text or not result.segments
        logger.info(
            f"{length} chars: {result.count} tokens, {len(result.segments)} segments, "
            f"full avg={statistics.mean(full_times):.4f}s, fast avg={statistics.mean(fast_times):.4f}s"
        )
        results[length] = {"full": full_times, "fast": fast_times}
    return results


async def main_async(model):
    cache = TokenizerCache(max_entries=4)
    try:
        cold, warm_times = await run_resolution_benchmark(cache, model)
        tokenizer = await cache.get_or_create(model)
        results = run_segmentation_benchmark(tokenizer, [500, 5000, 20000, 50000])

        print("\nBenchmark Results:")
        print(f"Cold resolution: {cold:.4f}s")
        print(f"Cached resolution: avg={statistics.mean(warm_times):.6f}s, max={max(warm_times):.6f}s")
        for length, times in results.items():
            print(
                f"{length:>6} chars: full avg={statistics.mean(times['full']):.4f}s, "
                f"fast avg={statistics.mean(times['fast']):.4f}s"
            )

        # Cached resolution should be effectively free
        target_met = statistics.mean(warm_times) < 0.001
        print(f"\nTarget of <1ms for cached resolution: {'MET' if target_met else 'NOT MET'}")
        return target_met
    finally:
        cache.clear()


def main():
    """Run the benchmark."""
    model = sys.argv[1] if len(sys.argv) > 1 else "cl100k_base"
    try:
        target_met = asyncio.run(main_async(model))
        sys.exit(0 if target_met else 1)
    except Exception as e:
        logger.exception(f"Error running benchmark: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()

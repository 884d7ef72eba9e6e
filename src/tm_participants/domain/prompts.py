"""Prompt text for the LLM-backed policy oracle."""

from src.tm_common.enums import Personality
from src.tm_market.domain.models import MarketState, ParticipantState
from src.tm_market.domain.sanitizer import max_affordable, max_sellable
from src.tm_pricing.engine.pricing import PricingEngine

_OUTPUT_FORMAT = """OUTPUT FORMAT (CRITICAL):
All orders are MARKET ORDERS executed at the current price.
Return exactly one decision as JSON inside a ```json code fence, e.g.
```json
{"action":"buy","quantity":3,"note":"short reason"}
```
action is one of "buy", "sell", "wait"; quantity is 0 for "wait"."""


def system_prompt(participant: ParticipantState) -> str:
    prefs = participant.preferences
    spend_pct = f"{prefs.max_spend_fraction * 100:.0f}%"

    if participant.personality == Personality.FRUGAL:
        threshold = f"{prefs.threshold:.4f}" if prefs.threshold is not None else "n/a"
        body = f"""You are "{participant.display_name}", a cautious buyer in a fruit market simulation.
You are patient and analytical and buy only clear bargains.
RULES:
- Buy only when price <= your threshold (${threshold}) or price <= 0.98 * rolling average.
- Never spend more than {spend_pct} of your money in one round; buy small lots.
- Prefer "wait" when in doubt; if you bought last round and price rose, wait.
- Use your price history to judge the trend."""
    elif participant.personality == Personality.IMPULSIVE:
        body = f"""You are "{participant.display_name}", an emotional, reactive trader in a fruit market simulation.
You love action and trade most rounds.
RULES:
- Buy most rounds while you have money, up to {spend_pct} of it per round; go all in on dips.
- Take quick profits: sell 4-6% of holdings when price >= 1.015 * your average buy price.
- Panic sell 4-7% of holdings when price falls more than 0.8% from its recent peak.
- React to the last price move more than to long-term averages."""
    else:
        body = f"""You are "{participant.display_name}", a rational, data-driven trader in a fruit market simulation.
You trust the numbers over emotion.
RULES:
- Anchor on your rolling average. Up to {spend_pct} of your money per round.
- price < 0.95 * avg: use the full budget. price < 0.98 * avg: 70%. Within ±2%: 30%.
- Sell 5-6% of holdings when price > 1.005 * avg on a confirmed uptrend, 3-4% when > 1.002 * avg.
- Never sell on a single-round dip; never sell more than you own."""
    return f"{body}\n\n{_OUTPUT_FORMAT}"


def market_prompt(participant: ParticipantState, market: MarketState) -> str:
    prefs = participant.preferences
    stats = participant.stats
    rolling_avg = PricingEngine.rolling_average(list(participant.recent_prices))
    recent = ", ".join(f"${p:.4f}" for p in list(participant.recent_prices)[-5:])
    last = participant.last_action
    last_line = f'{last.action.value} ({last.quantity}) - "{last.note}"' if last else "None"
    max_buy = max_affordable(participant.balance, prefs.max_spend_fraction, market.price)
    max_sell = max_sellable(participant.holdings, prefs.max_sell_fraction)

    if participant.holdings > 0 and stats.avg_buy_price > 0:
        unrealized = f"{(market.price - stats.avg_buy_price) / stats.avg_buy_price * 100:.1f}%"
    else:
        unrealized = "N/A"

    lines = [
        f"Market Round {market.round + 1}",
        "",
        "CURRENT MARKET STATE:",
        f"- Price: ${market.price:.4f} per apple",
        f"- Seller inventory: {market.inventory} apples remaining",
        f"- Rolling average (last {len(participant.recent_prices)} rounds): ${rolling_avg:.4f}",
        "",
        "YOUR STATE:",
        f"- Money: ${participant.balance:.2f}",
        f"- Holdings: {participant.holdings} apples",
        f"- Max buy this round: {max_buy} apples ({prefs.max_spend_fraction * 100:.0f}% budget)",
        f"- Max sell this round: {max_sell} apples "
        f"({prefs.max_sell_fraction * 100:.0f}% of holdings)",
    ]
    if prefs.threshold is not None:
        lines.append(f"- Your price threshold: ${prefs.threshold:.4f}")
    lines += [
        "",
        f"RECENT PRICES: [{recent}]",
        f"LAST ACTION: {last_line}",
        "",
        "YOUR STATISTICS:",
        f"- Total spent: ${stats.total_spent:.2f}",
        f"- Total received: ${stats.total_received:.2f}",
        f"- Realized profit: {stats.realized_profit:+.2f}",
        f"- Bought/sold: {stats.total_bought}/{stats.total_sold} apples",
        f"- Average buy price: ${stats.avg_buy_price:.4f}",
        f"- Profit if sold now: {unrealized}",
        "",
        "Decide BUY, SELL or WAIT for this round. You only decide; the market executes.",
    ]
    return "\n".join(lines)

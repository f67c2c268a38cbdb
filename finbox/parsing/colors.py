CATEGORY_COLORS: dict[str, str] = {
    "Fatura": "#4CAF50",
    "Brilhete": "#FF5722",
    "gastos diversos": "#2196F3",
    "Aluguel": "#1E3A8A",
    "Mercado": "#388E3C",
    "Compras online": "#7B1FA2",
    "Transporte": "#0288D1",
    "Lazer": "#FF5722",
    "Saúde": "#00796B",
    "Educacao": "#64B5F6",
}

FALLBACK_PALETTE: list[str] = [
    "#FFEB3B",
    "#8BC34A",
    "#FF9800",
    "#03A9F4",
    "#9C27B0",
    "#FF5722",
    "#607D8B",
]


def color_for(label: str) -> str:
    """Display color for a category or expense label.

    Known names use the fixed table; anything else is bucketed into the
    fallback palette by the sum of its code points, so the answer never
    depends on process state.
    """
    if label in CATEGORY_COLORS:
        return CATEGORY_COLORS[label]
    code_sum = sum(ord(char) for char in label)
    return FALLBACK_PALETTE[code_sum % len(FALLBACK_PALETTE)]

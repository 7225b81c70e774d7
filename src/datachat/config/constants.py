"""Fixed word lists and user-facing strings."""

from __future__ import annotations

# Bilingual (Indonesian / English) stopwords used for keyword extraction.
STOPWORDS: frozenset[str] = frozenset(
    {
        "yang", "di", "ke", "dari", "untuk", "adalah", "dan", "atau", "dengan",
        "pada", "oleh", "sebagai", "dalam", "ini", "itu", "akan", "telah",
        "sudah", "dapat", "jika", "apakah", "ada", "tidak", "bukan", "hanya",
        "juga", "lebih", "sangat", "paling", "saat", "ketika", "seperti",
        "agar", "maka", "tetapi",
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "were", "are", "be",
        "been", "being", "have", "has", "had", "do", "does", "did", "will",
        "would", "should", "could", "may", "might", "can",
    }
)

QUESTION_WORDS: tuple[str, ...] = (
    # Indonesian
    "berapa", "kapan", "siapa", "dimana", "di mana", "mana", "apa", "apakah",
    "bagaimana", "mengapa", "kenapa", "bisakah", "dapatkah", "adakah",
    "haruskah", "bolehkah",
    # English
    "how", "what", "when", "where", "who", "why", "which", "can", "could",
    "would", "should", "is", "are", "does",
)

DATA_KEYWORDS: tuple[str, ...] = (
    # Data / storage terms
    "data", "tabel", "table", "database", "query", "sql", "record", "baris",
    "kolom", "column", "laporan", "report", "statistik", "statistic",
    # Attendance (log_absen)
    "log_absen", "absen", "absensi", "kehadiran", "hadir", "check in",
    "checkin", "check out", "checkout", "terlambat", "telat", "lembur",
    "overtime", "wfa", "wfh", "wfo", "jam kerja", "durasi",
    # Tickets (m_ticket)
    "m_ticket", "tiket", "ticket", "request", "pekerjaan", "task", "bug",
    "incident", "explorasi", "deadline", "pengerjaan",
    # Complaints (nossa_closed)
    "nossa", "gangguan", "aduan", "complaint", "witel", "regional",
    "wilayah", "service_id", "service id", "ttr", "gejala", "penyebab",
    # Reporting
    "chart", "grafik", "dashboard", "metrik", "kpi", "hitung", "median",
    "kuartal", "quarter",
    # Aggregation
    "jumlah", "total", "count", "rata-rata", "average", "sum", "banyak",
    "maksimal", "minimal", "tertinggi", "terendah", "terbanyak",
    # Time
    "bulan", "tahun", "minggu", "tanggal", "periode", "hari ini", "kemarin",
    "januari", "februari", "maret", "april", "mei", "juni", "juli",
    "agustus", "september", "oktober", "november", "desember",
    "senin", "selasa", "rabu", "kamis", "jumat", "sabtu",
    "month", "year", "week", "date", "today", "yesterday",
    # Status
    "status", "closed", "open", "pending", "selesai", "progress", "done",
    # People
    "karyawan", "pegawai", "employee", "user", "pengguna", "pelanggan",
    "customer", "teknisi", "developer",
    # Analytics
    "analisis", "analysis", "performa", "performance", "trend", "tren",
    "pola", "insight", "forecast", "prediksi", "perbandingan", "compare",
    # Filters
    "tampilkan", "show", "daftar", "list", "cari", "filter", "berdasarkan",
    "urutkan", "sort", "group",
)

GREETING_PATTERNS: tuple[str, ...] = (
    r"^(hi|hello|halo|hai|hey|hei)($|\s|!)",
    r"^selamat (pagi|siang|sore|malam)",
    r"^good (morning|afternoon|evening)",
    r"^(terima kasih|thanks|thank you|thx)",
    r"^(bye|goodbye|dadah|sampai jumpa)",
    r"^(oke|ok|okay|baik|siap)($|!)",
)

SQL_PATTERNS: tuple[str, ...] = (
    r"select.*from",
    r"berapa.*yang",
    r"tampilkan.*data",
    r"show.*data",
    r"list.*all",
    r"daftar.*semua",
    r"cari.*tiket",
    r"filter.*berdasarkan",
)

IMAGE_WORDS: tuple[str, ...] = ("gambar", "image", "foto", "picture")

# Reranker sentinel when no chunk passes the relevance threshold.
NO_CONTEXT_SENTINEL = "Tidak ada konteks skema yang relevan ditemukan."

# Returned by the model-based reranker when nothing is relevant.
LLM_RERANK_NONE = "KONTEKS_TIDAK_RELEVAN"

GENERIC_APOLOGY = (
    "Maaf, terjadi kesalahan sistem yang tidak terduga. Silakan coba lagi nanti."
)
PLAN_FAILURE_MESSAGE = (
    "Maaf, saya mengalami kendala saat memahami pertanyaan Anda. "
    "Bisa tolong ulangi dengan kalimat yang lebih spesifik?"
)
EXECUTION_FAILURE_MESSAGE = (
    "Maaf, saya tidak dapat mengambil data untuk pertanyaan tersebut saat ini."
)
EMPTY_INPUT_MESSAGE = "Pesan atau gambar tidak boleh kosong."
NO_ROWS_MESSAGE = "Tidak ada data yang ditemukan dengan kriteria tersebut."
NULL_VALUE_TEXT = "Tidak tersedia"
PLACEHOLDER_TEXT = "[Sedang memproses...]"
CANCEL_MARKER = " (Stream dibatalkan)"
RESULTS_PLACEHOLDER = "[[results]]"

"""
Unit Tests - Retrieval Domains

Tests for the flashcard, chat, profile and simulation domains:
tagging heuristics, reranking and the domain-specific operations.
"""

import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from polyrag.core.types import RAGQuery, RAGResult
from polyrag.rag.chat import (
    MAX_HISTORY_TURNS,
    ChatRAGService,
    assess_conversational_value,
    extract_entities,
    extract_topics,
)
from polyrag.rag.flashcards import (
    FlashcardRAGService,
    assess_importance,
    extract_answer,
    extract_definitions,
)
from polyrag.rag.profile import (
    ProfileRAGService,
    StudyActivity,
    StudyAnalysis,
    detect_learning_style,
    extract_profile_data,
    extract_study_patterns,
)
from polyrag.rag.simulation import (
    SimulationCriteria,
    SimulationRAGService,
    assess_question_difficulty,
    detect_exam_type,
    extract_institution,
    extract_subjects,
    extract_year,
    rank_by_difficulty,
)


def lenient(service_class, adapter):
    """Build a domain service that keeps every match."""
    return service_class(adapter, replace(service_class.DEFAULT_CONFIG, min_similarity=0.0))


# =============================================================================
# Flashcards
# =============================================================================

class TestFlashcardTagging:
    """Tests for flashcard heuristics."""

    def test_importance_levels(self):
        """Test legal and foundational vocabulary ranks high."""
        assert assess_importance("Este princípio é fundamental segundo a lei.") == "high"
        assert assess_importance("Veja o caso a seguir.") == "medium"
        assert assess_importance("Texto simples sem nada.") == "low"

    def test_definitions_are_capped(self):
        """Test at most three definitions are extracted."""
        text = " ".join(f"Termo{i} significa uma coisa bastante longa numero {i}." for i in range(6))

        assert len(extract_definitions(text)) == 3

    def test_answer_uses_first_two_long_sentences(self):
        """Test the drafted answer keeps the first two substantial sentences."""
        content = (
            "Primeira frase longa o suficiente aqui. Curta. "
            "Segunda frase também longa bastante. Terceira frase comprida demais para entrar."
        )

        answer = extract_answer(content)

        assert answer.startswith("Primeira frase")
        assert answer.endswith("bastante.")
        assert "Terceira" not in answer


class TestFlashcardService:
    """Tests for FlashcardRAGService."""

    def test_defaults(self, adapter):
        """Test the flashcard domain defaults."""
        config = FlashcardRAGService(adapter).configuration

        assert config.index_name == "nup-flashcards-kb"
        assert (config.max_results, config.min_similarity) == (15, 0.75)
        assert (config.chunk_size, config.overlap_size) == (800, 150)

    @pytest.mark.asyncio
    async def test_chunks_are_tagged(self, adapter, make_document):
        """Test indexed chunks carry the flashcard tags."""
        service = FlashcardRAGService(adapter)
        content = "O princípio da legalidade é fundamental: a administração só age conforme a lei."
        await service.process_document(make_document(content))

        response = await service.search(RAGQuery(query=content, user_id="user-1"))
        metadata = response.results[0].metadata

        assert metadata["chunk_type"] == "flashcard"
        assert metadata["importance"] == "high"
        assert isinstance(metadata["concepts"], list)
        assert isinstance(metadata["definitions"], list)

    @pytest.mark.asyncio
    async def test_generate_flashcards(self, adapter, make_document):
        """Test cards are drafted from matching content."""
        service = FlashcardRAGService(adapter)
        content = "A fotossíntese é o processo pelo qual as plantas produzem energia a partir da luz solar."
        await service.process_document(make_document(content, id="bio-1"))

        cards = await service.generate_flashcards(content, user_id="user-1", max_cards=3)

        assert len(cards) == 1
        assert cards[0].source == "bio-1"
        assert cards[0].difficulty in ("easy", "medium", "hard")
        assert cards[0].question.endswith("?") or cards[0].question.startswith("Explique")

    @pytest.mark.asyncio
    async def test_generate_flashcards_without_content(self, adapter):
        """Test no content yields no cards."""
        service = FlashcardRAGService(adapter)

        assert await service.generate_flashcards("qualquer coisa", user_id="user-1") == []


# =============================================================================
# Chat
# =============================================================================

class TestChatTagging:
    """Tests for conversational heuristics."""

    def test_topics(self):
        """Test topics introduced by 'sobre' and 'tema de' are extracted."""
        assert extract_topics("Vamos falar sobre direito penal") == ["direito penal"]
        assert extract_topics("Claro, o tema de crimes") == ["crimes"]

    def test_entities(self):
        """Test proper names and acronyms are extracted."""
        entities = extract_entities("Rui Barbosa escreveu sobre o STF e a OAB.")

        assert "Rui Barbosa" in entities
        assert "STF" in entities
        assert "OAB" in entities

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Texto neutro.", 0.5),
            ("Como funciona?", 0.8),
            ("Qual o exemplo? Atenção ao caso importante.", 1.0),
        ],
    )
    def test_conversational_value(self, text, expected):
        """Test the conversational value is a capped sum of signals."""
        assert assess_conversational_value(text) == pytest.approx(expected)


class TestChatService:
    """Tests for ChatRAGService."""

    def test_history_is_capped(self, adapter):
        """Test only the ten most recent turns are kept."""
        service = ChatRAGService(adapter)
        for i in range(12):
            service.store_conversation_turn("user-1", f"pergunta {i}", f"resposta {i}")

        history = service.get_history("user-1")

        assert len(history) == MAX_HISTORY_TURNS
        assert history[0].user_message == "pergunta 2"
        assert history[-1].user_message == "pergunta 11"

    def test_conversation_context_uses_last_three_turns(self, adapter):
        """Test the prompt context has the last three turns formatted."""
        service = ChatRAGService(adapter)
        for i in range(5):
            service.store_conversation_turn("user-1", f"pergunta {i}", f"resposta {i}")

        context = service.get_conversation_context("user-1")

        assert context == [
            "Usuario: pergunta 2 | IA: resposta 2",
            "Usuario: pergunta 3 | IA: resposta 3",
            "Usuario: pergunta 4 | IA: resposta 4",
        ]

    def test_histories_are_per_user(self, adapter):
        """Test one user's turns never show up for another."""
        service = ChatRAGService(adapter)
        service.store_conversation_turn("alice", "oi", "olá")

        assert service.get_history("bob") == []
        assert service.get_conversation_context("bob") == []

    @pytest.mark.asyncio
    async def test_query_enriched_with_recent_topics(self, adapter, monkeypatch):
        """Test searches append topics from the last two turns."""
        service = ChatRAGService(adapter)
        service.store_conversation_turn("user-1", "Falamos sobre biologia celular", "Ok")
        service.store_conversation_turn("user-1", "Quero saber sobre direito penal", "Claro, o tema de crimes")

        embedded: list[str] = []
        original = adapter.generate_embedding

        async def recording(text):
            embedded.append(text)
            return await original(text)

        monkeypatch.setattr(adapter, "generate_embedding", recording)

        await service.search(RAGQuery(query="pergunta", user_id="user-1"))

        assert embedded == ["pergunta contexto: biologia celular direito penal crimes"]

    @pytest.mark.asyncio
    async def test_query_without_history_is_unchanged(self, adapter, monkeypatch):
        """Test a user with no history searches with the raw query."""
        service = ChatRAGService(adapter)
        embedded: list[str] = []
        original = adapter.generate_embedding

        async def recording(text):
            embedded.append(text)
            return await original(text)

        monkeypatch.setattr(adapter, "generate_embedding", recording)

        await service.search(RAGQuery(query="pergunta", user_id="user-1"))

        assert embedded == ["pergunta"]

    @pytest.mark.asyncio
    async def test_results_ordered_by_conversational_score(self, adapter, monkeypatch):
        """Test similarity is weighted by conversational value."""
        service = ChatRAGService(adapter)

        async def matches(query, text=None):
            return [
                RAGResult(id="a", content="a", similarity=0.9, metadata={"conversational_value": 0.5}),
                RAGResult(id="b", content="b", similarity=0.8, metadata={"conversational_value": 1.0}),
                RAGResult(id="c", content="c", similarity=0.95, metadata={}),
            ]

        monkeypatch.setattr(service, "_query_matches", matches)

        response = await service.search(RAGQuery(query="q", user_id="user-1"))

        assert [result.id for result in response.results] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_search_with_conversation_context(self, adapter, make_document):
        """Test results come back with context and suggestions."""
        service = lenient(ChatRAGService, adapter)
        content = "Na prática, como funciona a prisão preventiva? Veja um exemplo importante do caso."
        await service.process_document(make_document(content))
        service.store_conversation_turn("user-1", "Oi", "Olá, como posso ajudar?")

        outcome = await service.search_with_conversation_context("Como funciona a prisão?", "user-1")

        assert outcome.search_results.total_found == 1
        assert outcome.conversation_context == ["Usuario: Oi | IA: Olá, como posso ajudar?"]
        assert outcome.suggested_responses == [
            "Posso explicar melhor esse conceito se preferir.",
            "Baseando-me nos documentos disponíveis...",
            "Continuando nossa conversa anterior...",
        ]

    @pytest.mark.asyncio
    async def test_cleanup_purges_history(self, adapter, make_document):
        """Test cleanup drops history together with the vectors."""
        service = ChatRAGService(adapter)
        content = "Uma conversa longa o bastante sobre direito civil e contratos em geral."
        await service.process_document(make_document(content))
        service.store_conversation_turn("user-1", "oi", "olá")

        await service.cleanup("user-1")

        assert service.get_history("user-1") == []
        assert (await service.search(RAGQuery(query=content, user_id="user-1"))).total_found == 0

    @pytest.mark.asyncio
    async def test_cleanup_older_than_keeps_recent_turns(self, adapter):
        """Test an age bound only drops older turns."""
        service = ChatRAGService(adapter)
        service.store_conversation_turn("user-1", "antiga", "resposta")
        service._history["user-1"][0].timestamp = datetime.now(timezone.utc) - timedelta(days=10)
        service.store_conversation_turn("user-1", "recente", "resposta")

        await service.cleanup("user-1", older_than=datetime.now(timezone.utc) - timedelta(days=1))

        assert [turn.user_message for turn in service.get_history("user-1")] == ["recente"]


# =============================================================================
# Profile
# =============================================================================

class TestProfileTagging:
    """Tests for profile heuristics."""

    def test_profile_data(self):
        """Test strengths, weaknesses and preferences are extracted."""
        data = extract_profile_data("Aluno forte em matemática e com dificuldade em história")

        assert any(value.startswith("matemática") for value in data)
        assert any(value == "história" for value in data)

    def test_study_patterns(self):
        """Test clock times, periods and weekdays are extracted."""
        patterns = extract_study_patterns("Ele estuda das 19:30 toda segunda à noite")

        assert "estuda das 19:30" in patterns
        assert "segunda" in patterns
        assert "noite" in patterns

    @pytest.mark.parametrize(
        "text,style",
        [
            ("Aprende melhor com um gráfico", "visual"),
            ("Prefiro ouvir áudio", "auditivo"),
            ("Aprendo na prática", "cinestesico"),
            ("Faço uma lista de leitura", "leitura"),
            ("nada relevante", "visual"),
        ],
    )
    def test_learning_style(self, text, style):
        """Test the predominant style, with the first style winning ties."""
        assert detect_learning_style(text) == style


class TestProfileService:
    """Tests for ProfileRAGService."""

    @pytest.mark.asyncio
    async def test_analysis_defaults_without_profile(self, adapter):
        """Test a learner with no profile gets the default analysis."""
        service = ProfileRAGService(adapter)

        analysis = await service.analyze_study_patterns("user-1")

        assert analysis == StudyAnalysis()
        assert analysis.study_times == ["20:00-22:00"]
        assert analysis.recommended_schedule == ["Segunda: 2h", "Quarta: 2h", "Sexta: 2h"]

    @pytest.mark.asyncio
    async def test_update_profile_indexes_activity(self, adapter):
        """Test an activity becomes a profile document of the user."""
        service = lenient(ProfileRAGService, adapter)
        activity = StudyActivity(subject="direito", performance=80.0, time_spent=60, difficulty="medium")

        document_id = await service.update_profile("user-1", activity)

        assert document_id.startswith("activity_")
        response = await service.search(RAGQuery(query="Atividade de estudo: direito", user_id="user-1"))
        metadata = response.results[0].metadata
        assert metadata["document_id"] == document_id
        assert metadata["type"] == "activity_update"
        assert metadata["subject"] == "direito"
        assert metadata["performance"] == 80.0

    @pytest.mark.asyncio
    async def test_analysis_from_profile(self, adapter, make_document):
        """Test study times and subjects are summarized from the profile."""
        service = lenient(ProfileRAGService, adapter)
        await service.update_profile(
            "user-1",
            StudyActivity(subject="direito", performance=75.0, time_spent=45, difficulty="hard"),
        )
        await service.process_document(
            make_document("O aluno estuda das 19:30 todas as noites e prefere resumos e mapas mentais.")
        )

        analysis = await service.analyze_study_patterns("user-1")

        assert analysis.study_times == ["estuda das 19:30"]
        assert analysis.preferred_subjects == ["direito"]


# =============================================================================
# Simulation
# =============================================================================

def ranked(*entries):
    return [
        RAGResult(id=id, content=id, similarity=similarity, metadata={"difficulty": difficulty})
        for id, similarity, difficulty in entries
    ]


class TestSimulationRanking:
    """Tests for difficulty reordering within similarity bands."""

    def test_band_ordered_by_difficulty(self):
        """Test close results are reordered easiest first."""
        results = ranked(
            ("a", 0.95, "hard"),
            ("b", 0.93, "easy"),
            ("c", 0.91, "medium"),
            ("d", 0.85, "easy"),
        )

        assert [r.id for r in rank_by_difficulty(results)] == ["b", "c", "a", "d"]

    def test_gap_of_band_width_starts_new_band(self):
        """Test a gap of 0.05 separates results."""
        results = ranked(("a", 0.9, "hard"), ("b", 0.85, "easy"))

        assert [r.id for r in rank_by_difficulty(results)] == ["a", "b"]

    def test_bands_measured_from_band_start(self):
        """Test chained close results do not merge into one band."""
        results = ranked(
            ("a", 1.0, "hard"),
            ("b", 0.97, "medium"),
            ("c", 0.94, "easy"),
            ("d", 0.91, "easy"),
        )

        assert [r.id for r in rank_by_difficulty(results)] == ["b", "a", "c", "d"]

    def test_unknown_difficulty_counts_as_medium(self):
        """Test results without a difficulty sort between easy and hard."""
        results = ranked(("a", 0.9, "hard"), ("b", 0.9, None), ("c", 0.9, "easy"))

        assert [r.id for r in rank_by_difficulty(results)] == ["c", "b", "a"]

    def test_order_does_not_depend_on_input_order(self):
        """Test the ranking is a deterministic total order."""
        results = ranked(
            ("a", 0.99, "hard"),
            ("b", 0.97, "easy"),
            ("c", 0.92, "medium"),
            ("d", 0.90, "easy"),
            ("e", 0.70, "hard"),
            ("f", 0.68, "easy"),
        )
        expected = [r.id for r in rank_by_difficulty(results)]

        shuffler = random.Random(7)
        for _ in range(20):
            shuffled = list(results)
            shuffler.shuffle(shuffled)
            assert [r.id for r in rank_by_difficulty(shuffled)] == expected


class TestSimulationTagging:
    """Tests for question tagging heuristics."""

    def test_difficulty(self):
        """Test computation verbs push difficulty up."""
        assert assess_question_difficulty("Analise o texto.") == "easy"
        assert assess_question_difficulty("Calcule o valor.") == "medium"
        assert assess_question_difficulty("Calcule a integral da equação.") == "hard"

    def test_exam_metadata(self):
        """Test exam type, year, institution and subjects are detected."""
        text = "Concurso CESPE 2019 - Direito e Raciocínio Lógico"

        assert detect_exam_type(text) == "Concurso Público"
        assert extract_year(text) == 2019
        assert extract_institution(text) == "CESPE"
        assert extract_subjects(text) == ["direito", "raciocínio lógico"]

    def test_unknown_exam_metadata(self):
        """Test defaults when nothing is recognised."""
        assert detect_exam_type("Lista de exercícios") == "Geral"
        assert extract_institution("Lista de exercícios") == "Não identificada"
        assert extract_year("Lista de exercícios") == datetime.now(timezone.utc).year


class TestSimulationService:
    """Tests for SimulationRAGService."""

    EASY = "Questão 1: Sobre direito constitucional, analise a afirmação a seguir e responda. CESPE 2019"
    HARD = "Questão 2: Calcule a integral da equação de direito tributário e demonstre o resultado. FCC 2020"
    CONTEST = "Questão 3: Neste concurso de direito administrativo, identifique o ato correto. VUNESP 2021"

    @pytest.mark.asyncio
    async def test_search_tags(self, adapter, make_document):
        """Test indexed questions carry the exam tags."""
        service = lenient(SimulationRAGService, adapter)
        await service.process_document(make_document(self.HARD, id="hard"))

        response = await service.search(RAGQuery(query=self.HARD, user_id="user-1"))
        metadata = response.results[0].metadata

        assert metadata["difficulty"] == "hard"
        assert metadata["institution"] == "FCC"
        assert metadata["year"] == 2020
        assert metadata["subjects"] == ["direito"]

    @pytest.mark.asyncio
    async def test_custom_simulation_prefers_difficulty(self, adapter, make_document):
        """Test questions of the requested difficulty come first."""
        service = lenient(SimulationRAGService, adapter)
        await service.process_document(make_document(self.EASY, id="easy"))
        await service.process_document(make_document(self.HARD, id="hard"))

        questions = await service.generate_custom_simulation(
            "user-1",
            SimulationCriteria(subjects=["direito"], difficulty="easy", question_count=1),
        )

        assert len(questions) == 1
        assert questions[0].id == "q_1"
        assert questions[0].difficulty == "easy"
        assert questions[0].source == "CESPE"
        assert questions[0].subject == "direito"
        assert questions[0].question == self.EASY

    @pytest.mark.asyncio
    async def test_custom_simulation_fills_with_other_difficulties(self, adapter, make_document):
        """Test remaining slots are filled with other questions."""
        service = lenient(SimulationRAGService, adapter)
        await service.process_document(make_document(self.EASY, id="easy"))
        await service.process_document(make_document(self.HARD, id="hard"))

        questions = await service.generate_custom_simulation(
            "user-1",
            SimulationCriteria(subjects=["direito", "matemática"], difficulty="hard", question_count=5),
        )

        assert [q.id for q in questions] == ["q_1", "q_2"]
        assert [q.difficulty for q in questions] == ["hard", "easy"]

    @pytest.mark.asyncio
    async def test_custom_simulation_filters_exam_type(self, adapter, make_document):
        """Test an exam type restricts the candidate questions."""
        service = lenient(SimulationRAGService, adapter)
        await service.process_document(make_document(self.EASY, id="easy"))
        await service.process_document(make_document(self.CONTEST, id="contest"))

        questions = await service.generate_custom_simulation(
            "user-1",
            SimulationCriteria(subjects=["direito"], exam_type="Concurso Público"),
        )

        assert [q.source for q in questions] == ["VUNESP"]

    @pytest.mark.asyncio
    async def test_custom_simulation_without_subjects(self, adapter):
        """Test empty criteria produce no questions."""
        service = SimulationRAGService(adapter)

        assert await service.generate_custom_simulation("user-1", SimulationCriteria(subjects=[])) == []

import itertools

from quizpool.ai import AIGenerationError, AIProviderError, GenerationResult


def make_question(i, qtype):
    if qtype == 'mcq':
        return {
            'type': 'mcq',
            'question_text': f'광합성 질문 {i}: 엽록체의 틸라코이드에서 일어나는 반응으로 맞는 것은?',
            'options': [f'명반응 {i}', f'해당과정 {i}', f'발효 {i}', f'세포호흡 {i}'],
            'correct_answers': [f'명반응 {i}'],
            'explanation': '명반응은 틸라코이드 막에서 일어난다.',
        }
    if qtype == 'ox':
        return {
            'type': 'ox',
            'question_text': f'광합성 진술 {i}: 엽록소는 빛 에너지를 흡수하는 색소이다.',
            'options': ['O', 'X'],
            'correct_answers': ['O'],
        }
    if qtype == 'fill':
        return {
            'type': 'fill',
            'question_text': f'문장 {i}: 식물은 [____]에서 포도당을 합성한다.',
            'correct_answers': ['엽록체'],
        }
    return {
        'type': 'short',
        'question_text': f'질문 {i}: 광합성에 필요한 기체는 무엇인가?',
        'correct_answers': ['이산화탄소', 'CO2'],
    }


class FakeQuizGenerator:
    """Stands in for QuizGenerator; every call yields fresh, distinct questions.

    ``fail_models`` always raise ``error_cls``. ``duplicate`` makes every call
    return the same question texts. ``per_call`` overrides the prompt's count.
    """

    QUESTION_TYPES = ('mcq', 'ox', 'fill', 'short')

    def __init__(self, models=None, fail_models=(), error_cls=AIProviderError, duplicate=False, per_call=None, title='광합성 퀴즈'):
        self.models = list(models or ['model-a', 'model-b', 'model-c'])
        self.fail_models = set(fail_models)
        self.error_cls = error_cls
        self.duplicate = duplicate
        self.per_call = per_call
        self.title = title
        self.calls = []
        self.prompts = []
        self._counter = itertools.count(1)

    def _payload(self, schema, count):
        questions = []
        for n in range(count):
            i = n + 1 if self.duplicate else next(self._counter)
            questions.append(make_question(i, self.QUESTION_TYPES[(i - 1) % len(self.QUESTION_TYPES)]))
        return schema.model_validate({'title': self.title, 'questions': questions})

    def generate(self, prompt, schema, model=None):
        model = model or self.models[0]
        self.calls.append(model)
        self.prompts.append(prompt)
        if model in self.fail_models:
            raise self.error_cls(f'{model} unavailable')
        count = self.per_call if self.per_call is not None else max(1, prompt.question_count)
        return GenerationResult(
            payload=self._payload(schema, count),
            model=model,
            prompt_tokens=100,
            completion_tokens=200,
            attempted_models=[model],
        )

    def generate_with_fallback(self, prompt, schema):
        errors = []
        for model in self.models:
            try:
                return self.generate(prompt, schema, model)
            except AIGenerationError as e:
                errors.append({'model': model, 'error_type': type(e).__name__, 'error': str(e)})
        raise AIGenerationError('all AI models failed', errors=errors)

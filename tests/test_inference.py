"""Tests for the inference command line script."""

import json

import numpy as np
import pytest
import torch
from PIL import Image

from inference import (calculate_cer, calculate_corpus_cer, load_ground_truth, main,
                       predict_single_image, unknown_characters)
from ink_ctc import Candidate, CTCVocab, InkRecognizer, MultiCharResult, VariantConfig


class FixedOutputModule(torch.nn.Module):

    def __init__(self, output):
        super().__init__()
        self.register_buffer('output', output)

    def forward(self, x):
        return self.output


class StubRecognizer:
    """Answers every decoding mode with canned results"""

    def infer(self, image):
        return 'AB'

    def infer_beam_top_k(self, image, top_k, beam_width, per_step_top):
        return [Candidate('AB', 75.123456), Candidate('A', 24.876544)]

    def infer_top_k(self, image, top_k):
        return [Candidate('B', 90.0), Candidate('A', 10.0)][:top_k]

    def recognize_multi(self, image, seg_config, top_k, variant_config=None):
        self.variant_config = variant_config
        return MultiCharResult('AB', [Candidate('AB', 60.0), Candidate('AA', 40.0)])


@pytest.fixture
def image_file(tmp_path, square_blob_raster):
    path = tmp_path / 'sample.png'
    Image.fromarray(square_blob_raster).save(path)
    return path


@pytest.fixture
def model_files(tmp_path, make_log_probs):
    output = torch.from_numpy(make_log_probs([1, 1, 0, 2], 3).astype(np.float32)).unsqueeze(1)
    model_path = tmp_path / 'model.pt'
    torch.jit.script(FixedOutputModule(output)).save(str(model_path))
    vocab_path = tmp_path / 'vocab.json'
    vocab_path.write_text('{"itos": ["A", "B"]}', encoding='utf-8')
    return model_path, vocab_path


class TestCER:

    def test_exact_match(self):
        assert calculate_cer('あい', 'あい') == 0.0

    def test_one_substitution(self):
        assert calculate_cer('あう', 'あい') == pytest.approx(0.5)

    def test_empty_reference(self):
        assert calculate_cer('', '') == 0.0
        assert calculate_cer('x', '') == 1.0

    def test_corpus(self):
        assert calculate_corpus_cer(['ab', 'c'], ['ab', 'd']) == pytest.approx(1 / 3)
        assert calculate_corpus_cer([], []) == 0.0


class TestGroundTruth:

    def test_sidecar_text(self, image_file):
        image_file.with_suffix('.txt').write_text('AB\n', encoding='utf-8')
        assert load_ground_truth(image_file) == 'AB'

    def test_missing(self, image_file):
        assert load_ground_truth(image_file) is None


class TestUnknownCharacters:

    def test_characters_outside_vocab(self):
        vocab = CTCVocab(['A', 'B'])
        assert unknown_characters('ABCAC D', vocab) == ['C', ' ', 'D']
        assert unknown_characters('ABBA', vocab) == []
        assert unknown_characters('', vocab) == []


class TestPredictSingleImage:

    def test_greedy(self, image_file):
        assert predict_single_image(StubRecognizer(), image_file) == {'text': 'AB', 'candidates': []}

    def test_beam_rounds_percent(self, image_file):
        result = predict_single_image(StubRecognizer(), image_file, decode_mode='beam')
        assert result['text'] == 'AB'
        assert result['candidates'][0] == {'text': 'AB', 'percent': 75.1235}

    def test_single(self, image_file):
        result = predict_single_image(StubRecognizer(), image_file, decode_mode='single', top_k=1)
        assert result == {'text': 'B', 'candidates': [{'text': 'B', 'percent': 90.0}]}

    def test_multi(self, image_file):
        result = predict_single_image(StubRecognizer(), image_file, decode_mode='multi')
        assert result['text'] == 'AB'
        assert [c['text'] for c in result['candidates']] == ['AB', 'AA']

    def test_multi_variants_switch(self, image_file):
        recognizer = StubRecognizer()
        predict_single_image(recognizer, image_file, decode_mode='multi')
        assert isinstance(recognizer.variant_config, VariantConfig)
        predict_single_image(recognizer, image_file, decode_mode='multi', variants=False)
        assert recognizer.variant_config is None

    def test_real_recognizer(self, image_file, model_files):
        recognizer = InkRecognizer.from_files(*model_files)
        result = predict_single_image(recognizer, image_file, decode_mode='beam', beam_width=4,
                                      per_step_top=3)
        assert result['text'] == 'AB'


class TestMain:

    def test_requires_input(self, model_files):
        model_path, vocab_path = model_files
        assert main(['--checkpoint', str(model_path), '--vocab', str(vocab_path)]) == 1

    def test_single_image(self, tmp_path, image_file, model_files):
        model_path, vocab_path = model_files
        image_file.with_suffix('.txt').write_text('AB', encoding='utf-8')
        output = tmp_path / 'result.json'
        code = main(['--checkpoint', str(model_path), '--vocab', str(vocab_path),
                     '--image', str(image_file), '--output', str(output), '--device', 'cpu'])
        assert code == 0
        result = json.loads(output.read_text(encoding='utf-8'))
        assert result['prediction'] == 'AB'
        assert result['cer'] == 0.0

    def test_blank_image(self, tmp_path, blank_raster, model_files):
        model_path, vocab_path = model_files
        path = tmp_path / 'blank.png'
        Image.fromarray(blank_raster).save(path)
        code = main(['--checkpoint', str(model_path), '--vocab', str(vocab_path),
                     '--image', str(path), '--device', 'cpu'])
        assert code == 1

    def test_directory(self, tmp_path, square_blob_raster, blank_raster, model_files):
        model_path, vocab_path = model_files
        image_dir = tmp_path / 'images'
        image_dir.mkdir()
        Image.fromarray(square_blob_raster).save(image_dir / 'a.png')
        (image_dir / 'a.txt').write_text('AB', encoding='utf-8')
        Image.fromarray(blank_raster).save(image_dir / 'b.png')
        output = tmp_path / 'batch.json'

        code = main(['--checkpoint', str(model_path), '--vocab', str(vocab_path),
                     '--image_dir', str(image_dir), '--output', str(output),
                     '--decode_mode', 'single', '--device', 'cpu'])
        assert code == 0
        data = json.loads(output.read_text(encoding='utf-8'))
        assert data['summary']['samples_with_ground_truth'] == 1
        assert data['summary']['total_samples'] == 2
        first, second = data['detailed_results']
        assert first['image_name'] == 'a.png'
        assert first['candidates']
        assert second == {'image_path': str(image_dir / 'b.png'), 'image_name': 'b.png',
                          'error': 'empty'}

    def test_reports_unknown_ground_truth_characters(self, tmp_path, image_file, model_files):
        model_path, vocab_path = model_files
        image_file.with_suffix('.txt').write_text('ABC', encoding='utf-8')
        output = tmp_path / 'result.json'
        code = main(['--checkpoint', str(model_path), '--vocab', str(vocab_path),
                     '--image', str(image_file), '--output', str(output), '--device', 'cpu'])
        assert code == 0
        result = json.loads(output.read_text(encoding='utf-8'))
        assert result['unknown_characters'] == ['C']
        assert result['cer'] == pytest.approx(1 / 3)
